"""
Credential claim decoding.

The client only reads claims; signature verification is the server's job.
A credential is a JWT: three base64url segments, the middle one holding
`sub`, `userId`, optional `exp`/`iat` (seconds since epoch) and `roles`.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from itsdangerous import BadData
from itsdangerous.encoding import base64_decode

from ..models.credential import Credential, CredentialClaims
from ..models.user import Role
from ..utils.exceptions import MalformedCredential


def _decode_segment(segment: str) -> Dict[str, Any]:
    try:
        raw = base64_decode(segment)
        data = json.loads(raw.decode("utf-8"))
    except (BadData, UnicodeDecodeError, ValueError) as e:
        raise MalformedCredential(f"Credential claims cannot be decoded: {e}")
    if not isinstance(data, dict):
        raise MalformedCredential("Credential claims are not an object")
    return data


def _numeric(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedCredential(f"Claim '{name}' must be numeric")
    return float(value)


def _user_id(value: Any) -> int:
    if isinstance(value, bool):
        raise MalformedCredential("Claim 'userId' must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise MalformedCredential("Claim 'userId' is missing or not an integer")


def decode_credential(token: str) -> Credential:
    """
    Decode a bearer token into a Credential.

    Raises:
        MalformedCredential: token is not a JWT or a required claim is missing
    """
    if not isinstance(token, str) or not token.strip():
        raise MalformedCredential("Credential is empty")
    token = token.strip()
    parts = token.split(".")
    if len(parts) != 3 or not parts[1]:
        raise MalformedCredential("Credential is not a three-part token")

    payload = _decode_segment(parts[1])

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise MalformedCredential("Claim 'sub' is missing")

    raw_roles = payload.get("roles") or []
    if not isinstance(raw_roles, list):
        raise MalformedCredential("Claim 'roles' must be a list")

    email = payload.get("email")
    claims = CredentialClaims(
        subject=subject,
        user_id=_user_id(payload.get("userId")),
        expires_at=_numeric(payload.get("exp"), "exp"),
        issued_at=_numeric(payload.get("iat"), "iat"),
        roles=frozenset(Role.parse_all(raw_roles)),
        email=email if isinstance(email, str) and email else None,
    )
    return Credential(token=token, claims=claims)
