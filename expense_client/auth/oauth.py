"""
OAuth hand-off: popup window and full-page redirect.

Popup path: a named auxiliary window is opened at the authorization URL and
the landing page posts one structured message back. Messages travel through a
bounded, origin-checked HandoffChannel owned by the flow, so nothing outlives
the view that started it.

Redirect path: the provider redirects the whole page to the landing route
with either `token` or `error` in the query string.

Both paths end in SessionManager.complete_oauth().
"""

from __future__ import annotations

import queue
import threading
import webbrowser
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Union
from urllib.parse import parse_qs, urlparse

from ..core.navigation import (
    DASHBOARD_ROUTE,
    LOGIN_ROUTE,
    OAUTH_FAILED,
    Navigator,
    with_error,
)
from ..models.user import SessionUser
from ..utils.config import origin_of
from ..utils.exceptions import CredentialError, OAuthHandoffError
from ..utils.logger import get_logger
from .session import SessionManager

logger = get_logger(__name__)


@dataclass(frozen=True)
class HandoffSuccess:
    credential: str = field(repr=False)


@dataclass(frozen=True)
class HandoffError:
    reason: str


HandoffMessage = Union[HandoffSuccess, HandoffError]


def parse_handoff_message(data: Any) -> Optional[HandoffMessage]:
    """
    Typed view of a posted message, or None when it is not a hand-off.

    Accepts {kind: success, credential} / {kind: error, reason} and the
    backend's {type: oauth2_success, token} / {type: oauth2_error, message}.
    """
    if isinstance(data, (HandoffSuccess, HandoffError)):
        return data
    if not isinstance(data, dict):
        return None

    kind = data.get("kind")
    if kind is None:
        kind = {"oauth2_success": "success", "oauth2_error": "error"}.get(data.get("type"))

    if kind == "success":
        credential = data.get("credential") or data.get("token")
        if isinstance(credential, str) and credential:
            return HandoffSuccess(credential=credential)
        return None
    if kind == "error":
        reason = data.get("reason") or data.get("message") or "unknown_error"
        return HandoffError(reason=str(reason))
    return None


_CLOSED = object()


class HandoffChannel:
    """
    Bounded single-consumer channel for hand-off messages.

    Only messages whose origin matches `allowed_origin` are accepted.
    """

    def __init__(self, allowed_origin: str, maxsize: int = 8):
        self.allowed_origin = origin_of(allowed_origin)
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def accepts_origin(self, origin: Optional[str]) -> bool:
        return bool(origin) and origin_of(origin) == self.allowed_origin

    def post(self, origin: Optional[str], data: Any) -> bool:
        """Deliver a message. Returns False when it was dropped."""
        if self.closed:
            logger.info("Hand-off message after channel close dropped")
            return False
        if not self.accepts_origin(origin):
            logger.warning(
                "Hand-off message from untrusted origin dropped",
                origin=origin,
                allowed_origin=self.allowed_origin,
            )
            return False
        message = parse_handoff_message(data)
        if message is None:
            logger.warning("Unrecognised hand-off message dropped", origin=origin)
            return False
        try:
            self._queue.put_nowait(message)
        except queue.Full:
            logger.warning("Hand-off channel full, message dropped")
            return False
        return True

    def receive(self, timeout: Optional[float] = None) -> HandoffMessage:
        """
        Block for the next message.

        Raises:
            OAuthHandoffError: "timeout" when nothing arrived in time,
                "closed" when the channel was closed while waiting
        """
        if self.closed and self._queue.empty():
            raise OAuthHandoffError("closed")
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            raise OAuthHandoffError("timeout")
        if item is _CLOSED:
            raise OAuthHandoffError("closed")
        return item

    def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        # Wake a blocked receiver
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass

    def __enter__(self) -> "HandoffChannel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# ----------------------------------------------------------------------
# Windows
# ----------------------------------------------------------------------

class PopupWindow(Protocol):
    @property
    def closed(self) -> bool: ...

    def close(self) -> None: ...


class WindowOpener(Protocol):
    def open(self, url: str, name: str, width: int, height: int) -> Optional[PopupWindow]:
        """Open a named window; None when the window could not be opened."""
        ...


class BrowserWindow:
    """Handle for a window opened through the system browser"""

    def __init__(self, url: str, name: str):
        self.url = url
        self.name = name
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        # The system browser owns the real window; the handle is released
        self._closed = True


class BrowserWindowOpener:
    """Opens the authorization page with the `webbrowser` module"""

    def open(self, url: str, name: str, width: int, height: int) -> Optional[PopupWindow]:
        try:
            opened = webbrowser.open_new(url)
        except webbrowser.Error as e:
            logger.error("Browser could not be started", error=str(e))
            return None
        if not opened:
            return None
        return BrowserWindow(url, name)


# ----------------------------------------------------------------------
# Popup path
# ----------------------------------------------------------------------

class OAuthPopupFlow:
    """
    One popup sign-in attempt.

    Use as a context manager (or call teardown()) so the channel and the
    popup handle are released with the initiating view.
    """

    def __init__(
        self,
        session: SessionManager,
        navigator: Navigator,
        authorization_url: str,
        allowed_origin: str,
        opener: Optional[WindowOpener] = None,
        popup_name: str = "GoogleAuthLogin",
        width: int = 600,
        height: int = 700,
        landing_route: str = DASHBOARD_ROUTE,
    ):
        self.session = session
        self.navigator = navigator
        self.authorization_url = authorization_url
        self.opener = opener or BrowserWindowOpener()
        self.popup_name = popup_name
        self.width = width
        self.height = height
        self.landing_route = landing_route
        self.channel = HandoffChannel(allowed_origin)
        self.popup: Optional[PopupWindow] = None

    @property
    def active(self) -> bool:
        return self.popup is not None and not self.channel.closed

    def start(self) -> "OAuthPopupFlow":
        if self.channel.closed:
            raise OAuthHandoffError("closed")
        popup = self.opener.open(self.authorization_url, self.popup_name, self.width, self.height)
        if popup is None:
            logger.warning("OAuth popup blocked", url=self.authorization_url)
            self.teardown()
            raise OAuthHandoffError("popup_blocked")
        self.popup = popup
        logger.info("OAuth popup opened", name=self.popup_name, url=self.authorization_url)
        return self

    def post_message(self, origin: Optional[str], data: Any) -> bool:
        return self.channel.post(origin, data)

    def handle(self, message: HandoffMessage) -> SessionUser:
        """
        Apply one hand-off message. The popup is closed either way.

        Raises:
            OAuthHandoffError: the provider reported an error
            CredentialError: the delivered credential was rejected
        """
        try:
            if isinstance(message, HandoffError):
                logger.warning("OAuth hand-off failed", reason=message.reason)
                raise OAuthHandoffError(message.reason)
            user = self.session.complete_oauth(message.credential)
        finally:
            self._close_popup()
        self.navigator.navigate(self.landing_route, replace=True)
        logger.info("OAuth login completed", user_id=user.id)
        return user

    def wait(self, timeout: Optional[float] = None) -> SessionUser:
        """Block for the hand-off and apply it; the flow is torn down afterwards."""
        try:
            message = self.channel.receive(timeout)
            return self.handle(message)
        finally:
            self.teardown()

    def _close_popup(self) -> None:
        if self.popup is not None and not self.popup.closed:
            self.popup.close()

    def teardown(self) -> None:
        """Release the channel and the popup. Idempotent."""
        self.channel.close()
        self._close_popup()

    def __enter__(self) -> "OAuthPopupFlow":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()


# ----------------------------------------------------------------------
# Redirect path
# ----------------------------------------------------------------------

class OAuthRedirectHandler:
    """Landing route for the full-page redirect"""

    def __init__(
        self,
        session: SessionManager,
        navigator: Navigator,
        landing_route: str = DASHBOARD_ROUTE,
        login_route: str = LOGIN_ROUTE,
    ):
        self.session = session
        self.navigator = navigator
        self.landing_route = landing_route
        self.login_route = login_route

    def handle(self, token: Optional[str] = None, error: Optional[str] = None) -> str:
        """Adopt `token` or route to login; returns the route navigated to."""
        if token:
            try:
                self.session.complete_oauth(token)
            except CredentialError as e:
                logger.warning("OAuth redirect credential rejected", error=str(e))
                route = with_error(self.login_route, OAUTH_FAILED)
            else:
                route = self.landing_route
        elif error:
            logger.warning("OAuth redirect reported an error", error=error)
            route = with_error(self.login_route, OAUTH_FAILED)
        else:
            logger.info("OAuth redirect without token or error")
            route = self.login_route
        self.navigator.navigate(route, replace=True)
        return route

    def handle_url(self, url: str) -> str:
        query: Dict[str, list] = parse_qs(urlparse(url).query)
        token = (query.get("token") or [None])[0]
        error = (query.get("error") or [None])[0]
        return self.handle(token=token, error=error)
