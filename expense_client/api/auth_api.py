"""Authentication and current-user endpoints"""

from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from ..models.user import LoginRequest, LoginResponse, ProfileUpdate, RegisterRequest, SessionUser
from ..utils.exceptions import TransportFailure
from ..utils.logger import get_logger
from .gateway import HttpGateway

logger = get_logger(__name__)


class AuthApi:
    """POST /auth/login, POST /auth/register"""

    def __init__(self, gateway: HttpGateway):
        self.gateway = gateway

    def login(self, identifier: str, password: str) -> LoginResponse:
        """`identifier` is a username or an email; the backend resolves either."""
        body = LoginRequest(username=identifier, password=password).to_payload()
        data = self.gateway.post_json("/auth/login", body)
        try:
            return LoginResponse.model_validate(data)
        except PydanticValidationError as e:
            raise TransportFailure(f"Unexpected login response: {e}")

    def register(self, request: RegisterRequest) -> str:
        """Returns the server's confirmation message."""
        response = self.gateway.request("POST", "/auth/register", json=request.to_payload())
        content_type = response.headers.get("Content-Type", "")
        if "json" in content_type:
            data = self.gateway.json_of(response)
            if isinstance(data, dict):
                return str(data.get("message") or "")
            return str(data)
        return response.text


class UserApi:
    """GET/PUT /users/me"""

    def __init__(self, gateway: HttpGateway):
        self.gateway = gateway

    @staticmethod
    def _user(data) -> SessionUser:
        try:
            return SessionUser.model_validate(data)
        except PydanticValidationError as e:
            raise TransportFailure(f"Unexpected user payload: {e}")

    def me(self) -> SessionUser:
        return self._user(self.gateway.get_json("/users/me"))

    def update_me(self, first_name: Optional[str] = None, last_name: Optional[str] = None) -> SessionUser:
        body = ProfileUpdate(first_name=first_name, last_name=last_name).to_payload()
        return self._user(self.gateway.put_json("/users/me", body))
