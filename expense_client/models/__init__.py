"""Data models for the expense client"""

from .credential import Credential, CredentialClaims
from .expense import (
    ApprovalHistoryEntry,
    Attachment,
    AttachmentContent,
    Expense,
    ExpenseCategory,
    ExpenseRequest,
    ExpenseStatus,
    UploadFile,
)
from .page import Page, PageRequest
from .user import LoginResponse, ProfileUpdate, RegisterRequest, Role, SessionUser

__all__ = [
    "ApprovalHistoryEntry",
    "Attachment",
    "AttachmentContent",
    "Credential",
    "CredentialClaims",
    "Expense",
    "ExpenseCategory",
    "ExpenseRequest",
    "ExpenseStatus",
    "LoginResponse",
    "Page",
    "PageRequest",
    "ProfileUpdate",
    "RegisterRequest",
    "Role",
    "SessionUser",
    "UploadFile",
]
