"""Session lifecycle, credential storage and the OAuth hand-off"""

from .credential_store import CredentialStore
from .oauth import (
    BrowserWindowOpener,
    HandoffChannel,
    HandoffError,
    HandoffSuccess,
    OAuthPopupFlow,
    OAuthRedirectHandler,
    parse_handoff_message,
)
from .session import SessionManager
from .tokens import decode_credential

__all__ = [
    "BrowserWindowOpener",
    "CredentialStore",
    "HandoffChannel",
    "HandoffError",
    "HandoffSuccess",
    "OAuthPopupFlow",
    "OAuthRedirectHandler",
    "SessionManager",
    "decode_credential",
    "parse_handoff_message",
]
