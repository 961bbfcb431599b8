"""Expense, attachment and approval-history models"""

import mimetypes
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from pydantic import ConfigDict, Field, field_validator

from .base import ApiModel


class ExpenseStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    PENDING_FINANCE_APPROVAL = "PENDING_FINANCE_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PAID = "PAID"


class Attachment(ApiModel):
    id: int
    file_name: str
    file_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


class Expense(ApiModel):
    id: int
    description: str
    amount: Decimal = Field(gt=0)
    expense_date: date
    status: ExpenseStatus
    user_id: int
    username: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("attachments", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return value or []

    def is_owned_by(self, user_id: int) -> bool:
        return self.user_id == user_id


class ExpenseRequest(ApiModel):
    """Body of the `expense` part for create and update"""

    description: str
    amount: Decimal = Field(ge=Decimal("0.01"))
    expense_date: date
    category_id: int

    @field_validator("description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Description cannot be blank")
        return value.strip()

    @field_validator("expense_date")
    @classmethod
    def _not_in_future(cls, value: date) -> date:
        if value > date.today():
            raise ValueError("Expense date cannot be in the future")
        return value


class ExpenseCategory(ApiModel):
    id: int
    name: str


class ApprovalHistoryEntry(ApiModel):
    """Immutable audit record, one per workflow transition"""

    id: Optional[int] = None
    expense_id: int
    approver_user_id: int
    approver_username: Optional[str] = None
    status_before: Optional[ExpenseStatus] = None
    status_after: ExpenseStatus
    comments: Optional[str] = None
    action_date: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


@dataclass(frozen=True)
class UploadFile:
    """A file to attach on submit or edit"""
    file_name: str
    content: Union[bytes, BinaryIO]
    content_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: Union[str, Path], content_type: Optional[str] = None) -> "UploadFile":
        path = Path(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            file_name=path.name,
            content=path.read_bytes(),
            content_type=content_type or guessed or "application/octet-stream",
        )


@dataclass(frozen=True)
class AttachmentContent:
    file_name: str
    content_type: str
    data: bytes = b""
