"""
Composition root.

ExpenseClient builds one session and wires it into every collaborator that
needs it. Nothing in the package holds module-level session state, so tests
construct as many isolated clients as they like.
"""

from pathlib import Path
from typing import Iterable, List, Optional

import requests
from pydantic import ValidationError as PydanticValidationError

from .api.auth_api import AuthApi, UserApi
from .api.expense_api import ExpenseApi
from .api.gateway import HttpGateway
from .auth.credential_store import CredentialStore
from .auth.oauth import OAuthPopupFlow, OAuthRedirectHandler, WindowOpener
from .auth.session import SessionManager
from .core.navigation import Navigator, RouteDecision, guard_private_route, guard_public_route
from .models.base import first_error
from .models.expense import UploadFile
from .models.user import RegisterRequest, SessionUser
from .services.approval_coordinator import ApprovalCoordinator
from .services.expense_service import ExpenseService
from .services.profile_service import ProfileService
from .utils.config import ConfigManager, Settings
from .utils.exceptions import OAuthHandoffError, ValidationError
from .utils.logger import get_logger
from .workflow.expense_workflow import ExpenseWorkflow

logger = get_logger(__name__)


class ExpenseClient:
    """The client as seen by a UI collaborator"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[CredentialStore] = None,
        navigator: Optional[Navigator] = None,
        http: Optional[requests.Session] = None,
        opener: Optional[WindowOpener] = None,
    ):
        self.settings = settings or Settings()
        self.navigator = navigator or Navigator()
        self.store = store or CredentialStore(Path(self.settings.session.store_path))
        self.opener = opener

        self.session = SessionManager(self.store)
        self.gateway = HttpGateway(
            self.settings.api.base_url,
            self.session,
            navigator=self.navigator,
            login_route=self.settings.routes.login,
            connection_timeout=self.settings.api.connection_timeout,
            read_timeout=self.settings.api.read_timeout,
            http=http,
        )
        self.auth_api = AuthApi(self.gateway)
        self.user_api = UserApi(self.gateway)
        self.expense_api = ExpenseApi(self.gateway)
        self.session.auth_api = self.auth_api

        pagination = self.settings.pagination
        self.workflow = ExpenseWorkflow()
        self.expenses = ExpenseService(
            self.expense_api,
            self.session,
            self.workflow,
            page_size=pagination.page_size,
            sort=(pagination.my_expenses_sort,),
        )
        self.approvals = ApprovalCoordinator(
            self.expense_api,
            self.session,
            self.workflow,
            page_size=pagination.page_size,
            sort=(pagination.pending_sort,),
        )
        self.session.add_teardown_listener(self.expenses.my_expenses.reset)
        self.session.add_teardown_listener(self.approvals.queue.reset)
        self.profile = ProfileService(self.user_api, self.session)
        self.oauth_redirect = OAuthRedirectHandler(
            self.session,
            self.navigator,
            landing_route=self.settings.routes.landing,
            login_route=self.settings.routes.login,
        )
        self.oauth_flow: Optional[OAuthPopupFlow] = None

    @classmethod
    def from_config(cls, settings_path: Optional[Path] = None, **kwargs) -> "ExpenseClient":
        settings = ConfigManager(settings_path).load_settings_or_default()
        return cls(settings=settings, **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, background: bool = True) -> None:
        """Restore the persisted session. In background mode `session.loading` stays True until done."""
        if background:
            self.session.start_hydration()
        else:
            self.session.hydrate()

    def close(self) -> None:
        if self.oauth_flow is not None:
            self.oauth_flow.teardown()
            self.oauth_flow = None
        self.gateway.close()

    def __enter__(self) -> "ExpenseClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def login(self, identifier: str, password: str) -> SessionUser:
        user = self.session.login_with_password(identifier, password)
        self.navigator.navigate(self.settings.routes.landing, replace=True)
        return user

    def register(
        self,
        username: str,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> str:
        try:
            request = RegisterRequest(
                username=username,
                email=email,
                password=password,
                first_name=first_name,
                last_name=last_name,
            )
        except PydanticValidationError as e:
            message, field = first_error(e)
            raise ValidationError(message, field=field)
        message = self.auth_api.register(request)
        logger.info("Registration accepted", username=username)
        return message

    def logout(self) -> None:
        self.session.logout()
        self.navigator.navigate(self.settings.routes.login, replace=True)

    def open_oauth_popup(self) -> OAuthPopupFlow:
        """
        Start a popup sign-in. Any earlier flow is torn down first.

        Raises:
            OAuthHandoffError: "popup_blocked" when the window could not be opened
        """
        if self.oauth_flow is not None:
            self.oauth_flow.teardown()
        oauth = self.settings.oauth
        flow = OAuthPopupFlow(
            self.session,
            self.navigator,
            authorization_url=self.settings.oauth_authorization_url(),
            allowed_origin=self.settings.oauth_allowed_origin(),
            opener=self.opener,
            popup_name=oauth.popup_name,
            width=oauth.popup_width,
            height=oauth.popup_height,
            landing_route=self.settings.routes.landing,
        )
        self.oauth_flow = flow
        try:
            return flow.start()
        except OAuthHandoffError:
            self.oauth_flow = None
            raise

    # ------------------------------------------------------------------
    # Route guards
    # ------------------------------------------------------------------

    def guard_private(self) -> RouteDecision:
        return guard_private_route(self.session)

    def guard_public(self) -> RouteDecision:
        return guard_public_route(self.session)

    def can_review(self) -> bool:
        return self.workflow.can_review(self.session.user)

    @staticmethod
    def attachments_from(paths: Iterable[Path]) -> List[UploadFile]:
        return [UploadFile.from_path(p) for p in paths]
