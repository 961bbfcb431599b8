"""Current-user profile"""

from typing import Optional

from ..api.auth_api import UserApi
from ..auth.session import SessionManager
from ..models.user import SessionUser
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ProfileService:
    def __init__(self, api: UserApi, session: SessionManager):
        self.api = api
        self.session = session

    def load(self) -> Optional[SessionUser]:
        """Fetch /users/me and fold its name fields into the session user."""
        self.session.require_user()
        profile = self.api.me()
        return self.session.refine_profile(profile)

    def update(self, first_name: Optional[str] = None, last_name: Optional[str] = None) -> Optional[SessionUser]:
        self.session.require_user()
        profile = self.api.update_me(first_name=first_name, last_name=last_name)
        logger.info("Profile updated", user_id=profile.id)
        return self.session.refine_profile(profile)
