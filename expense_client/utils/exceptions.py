"""Custom exceptions for the expense client"""

from typing import Optional


class ExpenseClientError(Exception):
    """Base exception for the expense client"""
    pass


class CredentialError(ExpenseClientError):
    """Credential could not be adopted; the session has been torn down"""
    pass


class MalformedCredential(CredentialError):
    """Credential claims are missing or cannot be decoded"""
    pass


class ExpiredCredential(CredentialError):
    """Credential expiry claim is in the past"""

    def __init__(self, message: str, expired_at: Optional[float] = None):
        self.expired_at = expired_at
        super().__init__(message)


class AuthorizationFailure(ExpenseClientError):
    """Server rejected the credential (HTTP 401)"""

    def __init__(self, message: str = "Not authenticated", status_code: int = 401):
        self.status_code = status_code
        super().__init__(message)


class StaleResponse(AuthorizationFailure):
    """Response belongs to a session that ended or was replaced while it was in flight"""

    def __init__(self, message: str = "Session changed while the request was in flight"):
        super().__init__(message, status_code=0)


class ForbiddenAction(ExpenseClientError):
    """Actor lacks the role or ownership required for the action"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ValidationError(ExpenseClientError):
    """Input rejected before or by the server"""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class InvalidStateTransition(ValidationError):
    """Action is not legal from the expense's current status"""

    def __init__(self, message: str, status: Optional[str] = None, action: Optional[str] = None):
        self.status = status
        self.action = action
        super().__init__(message, field="status")


class NotFound(ExpenseClientError):
    """Requested resource does not exist"""
    pass


class TransportFailure(ExpenseClientError):
    """Network failure or unexpected server response"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class OAuthHandoffError(ExpenseClientError):
    """OAuth hand-off did not deliver a credential"""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ConfigError(ExpenseClientError):
    """Configuration error"""
    pass
