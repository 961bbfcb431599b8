"""Expense, approval and category endpoints"""

import json
import re
from typing import Any, Iterable, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..models.expense import (
    ApprovalHistoryEntry,
    AttachmentContent,
    Expense,
    ExpenseCategory,
    ExpenseRequest,
    UploadFile,
)
from ..models.page import Page, PageRequest
from ..utils.exceptions import TransportFailure
from ..utils.logger import get_logger
from .gateway import HttpGateway

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

_FILENAME_RE = re.compile(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', re.IGNORECASE)


def _parse(model: Type[M], data: Any, what: str) -> M:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise TransportFailure(f"Unexpected {what} payload: {e}")


def _parse_list(model: Type[M], data: Any, what: str) -> List[M]:
    if not isinstance(data, list):
        raise TransportFailure(f"Expected a list of {what}")
    return [_parse(model, item, what) for item in data]


def multipart_parts(request: ExpenseRequest, files: Iterable[UploadFile] = ()) -> List[Tuple[str, Any]]:
    """One JSON part named `expense`, then one `files` part per upload."""
    parts: List[Tuple[str, Any]] = [
        ("expense", (None, json.dumps(request.to_payload()), "application/json")),
    ]
    for upload in files:
        parts.append(("files", (upload.file_name, upload.content, upload.content_type)))
    return parts


class ExpenseApi:
    """Wraps /expenses, /approvals and /admin/categories"""

    def __init__(self, gateway: HttpGateway):
        self.gateway = gateway

    # Listings

    def list_my(self, request: PageRequest) -> Page[Expense]:
        data = self.gateway.get_json("/expenses/my", params=request.to_params())
        return _parse(Page[Expense], data, "page")

    def list_pending(self, request: PageRequest) -> Page[Expense]:
        data = self.gateway.get_json("/approvals/pending", params=request.to_params())
        return _parse(Page[Expense], data, "page")

    # Single expense

    def get(self, expense_id: int) -> Expense:
        return _parse(Expense, self.gateway.get_json(f"/expenses/{expense_id}"), "expense")

    def create(self, request: ExpenseRequest, files: Iterable[UploadFile] = ()) -> Expense:
        data = self.gateway.post_json("/expenses", files=multipart_parts(request, files))
        return _parse(Expense, data, "expense")

    def update(self, expense_id: int, request: ExpenseRequest, files: Iterable[UploadFile] = ()) -> Expense:
        data = self.gateway.put_json(f"/expenses/{expense_id}", files=multipart_parts(request, files))
        return _parse(Expense, data, "expense")

    def delete(self, expense_id: int) -> None:
        self.gateway.delete(f"/expenses/{expense_id}")

    def history(self, expense_id: int) -> List[ApprovalHistoryEntry]:
        data = self.gateway.get_json(f"/expenses/{expense_id}/history")
        return _parse_list(ApprovalHistoryEntry, data, "approval history")

    def download_attachment(self, attachment_id: int) -> AttachmentContent:
        response = self.gateway.request("GET", f"/expenses/attachments/{attachment_id}/download")
        disposition = response.headers.get("Content-Disposition", "")
        match = _FILENAME_RE.search(disposition)
        content = AttachmentContent(
            file_name=match.group(1) if match else f"attachment-{attachment_id}",
            content_type=response.headers.get("Content-Type", "application/octet-stream"),
            data=response.content,
        )
        logger.info("Attachment downloaded", attachment_id=attachment_id, size=len(content.data))
        return content

    # Decisions

    def approve(self, expense_id: int, comments: Optional[str] = None) -> Expense:
        body = {"comments": comments} if comments else {}
        return _parse(Expense, self.gateway.post_json(f"/expenses/{expense_id}/approve", body), "expense")

    def reject(self, expense_id: int, comments: str) -> Expense:
        body = {"comments": comments}
        return _parse(Expense, self.gateway.post_json(f"/expenses/{expense_id}/reject", body), "expense")

    # Reference data

    def categories(self) -> List[ExpenseCategory]:
        return _parse_list(ExpenseCategory, self.gateway.get_json("/admin/categories"), "category")
