"""Bearer credential and its decoded claims"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import FrozenSet, Optional

from .user import Role, SessionUser


@dataclass(frozen=True)
class CredentialClaims:
    subject: str
    user_id: int
    expires_at: Optional[float] = None  # seconds since epoch
    issued_at: Optional[float] = None
    roles: FrozenSet[Role] = field(default_factory=frozenset)
    email: Optional[str] = None


@dataclass(frozen=True)
class Credential:
    """
    Opaque token plus the claims decoded from it.

    Replaced wholesale on the next login; never mutated.
    """
    token: str = field(repr=False)
    claims: CredentialClaims

    @property
    def subject(self) -> str:
        return self.claims.subject

    @property
    def user_id(self) -> int:
        return self.claims.user_id

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.claims.expires_at is None:
            return None
        return datetime.fromtimestamp(self.claims.expires_at, tz=timezone.utc)

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.claims.expires_at is None:
            return False
        current = time.time() if now is None else now
        return self.claims.expires_at < current

    def to_user(self, email: Optional[str] = None) -> SessionUser:
        # Keep the role order stable for persistence and display
        roles = [r for r in Role if r in self.claims.roles]
        return SessionUser(
            id=self.claims.user_id,
            username=self.claims.subject,
            email=email or self.claims.email or "",
            roles=roles,
        )
