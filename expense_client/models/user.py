"""User, role and authentication payload models"""

from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from pydantic import ConfigDict, EmailStr, Field, field_validator

from ..utils.logger import get_logger
from .base import ApiModel

logger = get_logger(__name__)


class Role(str, Enum):
    EMPLOYEE = "ROLE_EMPLOYEE"
    MANAGER = "ROLE_MANAGER"
    FINANCE = "ROLE_FINANCE"
    ADMIN = "ROLE_ADMIN"

    @classmethod
    def parse(cls, value: str) -> Optional["Role"]:
        """Accepts ROLE_MANAGER, MANAGER or manager. Unknown names return None."""
        if not isinstance(value, str):
            return None
        name = value.strip().upper()
        if not name.startswith("ROLE_"):
            name = f"ROLE_{name}"
        try:
            return cls(name)
        except ValueError:
            return None

    @classmethod
    def parse_all(cls, values: Optional[Iterable[str]]) -> List["Role"]:
        roles: List[Role] = []
        for value in values or []:
            role = cls.parse(value)
            if role is None:
                logger.warning("Ignoring unknown role", role=str(value))
                continue
            if role not in roles:
                roles.append(role)
        return roles


class SessionUser(ApiModel):
    """Authenticated user view. id/username/email/roles are fixed after login."""

    id: int
    username: str
    email: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    roles: List[Role] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @field_validator("email", mode="before")
    @classmethod
    def _blank_email(cls, value):
        return value or ""

    @field_validator("roles", mode="before")
    @classmethod
    def _parse_roles(cls, value):
        return Role.parse_all(value)

    @property
    def role_set(self) -> FrozenSet[Role]:
        return frozenset(self.roles)

    @property
    def display_name(self) -> str:
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or self.username

    def has_any_role(self, roles: Iterable[Role]) -> bool:
        return bool(self.role_set & frozenset(roles))

    def with_names(self, first_name: Optional[str], last_name: Optional[str]) -> "SessionUser":
        """Copy with refined name fields; everything else is kept."""
        return self.model_copy(update={"first_name": first_name, "last_name": last_name})


class LoginRequest(ApiModel):
    username: str
    password: str


class LoginResponse(ApiModel):
    access_token: str = ""
    token_type: str = "Bearer"
    username: Optional[str] = None
    email: Optional[str] = None
    user_id: Optional[int] = None


class RegisterRequest(ApiModel):
    username: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=1)
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ProfileUpdate(ApiModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
