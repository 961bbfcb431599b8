"""Owner-side expense operations: submit, edit, delete and the "my expenses" list"""

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..api.expense_api import ExpenseApi
from ..auth.session import SessionManager
from ..models.base import first_error
from ..models.expense import (
    ApprovalHistoryEntry,
    AttachmentContent,
    Expense,
    ExpenseCategory,
    ExpenseRequest,
    UploadFile,
)
from ..utils.exceptions import ValidationError
from ..utils.logger import get_logger
from ..workflow.expense_workflow import ExpenseAction, ExpenseWorkflow
from .pagination import PaginatedResourceFetcher

logger = get_logger(__name__)

DEFAULT_SORT = ("expenseDate,desc",)


def build_request(
    description: str,
    amount: Union[Decimal, str, float],
    expense_date: Union[date, str],
    category_id: int,
) -> ExpenseRequest:
    """Validate form input into an ExpenseRequest, or raise ValidationError naming the field."""
    try:
        return ExpenseRequest(
            description=description,
            amount=amount,
            expense_date=expense_date,
            category_id=category_id,
        )
    except PydanticValidationError as e:
        message, field = first_error(e)
        raise ValidationError(message, field=field)


class ExpenseService:
    """Expenses owned by the signed-in user"""

    def __init__(
        self,
        api: ExpenseApi,
        session: SessionManager,
        workflow: ExpenseWorkflow,
        page_size: int = 10,
        sort=DEFAULT_SORT,
    ):
        self.api = api
        self.session = session
        self.workflow = workflow
        self.my_expenses: PaginatedResourceFetcher[Expense] = PaginatedResourceFetcher(
            api.list_my, page_size=page_size, sort=sort, name="my_expenses"
        )

    def submit(self, request: ExpenseRequest, files: Iterable[UploadFile] = ()) -> Expense:
        actor = self.session.require_user()
        self.workflow.check(ExpenseAction.SUBMIT, None, actor)
        files = list(files)
        expense = self.api.create(request, files)
        logger.info(
            "Expense submitted",
            expense_id=expense.id,
            amount=str(expense.amount),
            attachments=len(files),
            status=expense.status.value,
        )
        self.my_expenses.refresh_after_mutation()
        return expense

    def get(self, expense_id: int) -> Expense:
        return self.api.get(expense_id)

    def edit(
        self,
        expense: Union[Expense, int],
        request: ExpenseRequest,
        files: Iterable[UploadFile] = (),
    ) -> Expense:
        """
        Update fields and append attachments. Existing attachments are kept.

        The current server copy is checked against the workflow first, so a
        status change by a concurrent approver is caught before the update.
        """
        actor = self.session.require_user()
        expense_id = expense.id if isinstance(expense, Expense) else expense
        current = self.api.get(expense_id)
        self.workflow.check(ExpenseAction.EDIT, current, actor)
        files = list(files)
        updated = self.api.update(expense_id, request, files)
        logger.info(
            "Expense updated",
            expense_id=expense_id,
            status_before=current.status.value,
            status_after=updated.status.value,
            attachments_added=len(files),
        )
        self.my_expenses.refresh_after_mutation()
        return updated

    def delete(self, expense: Union[Expense, int]) -> None:
        actor = self.session.require_user()
        expense_id = expense.id if isinstance(expense, Expense) else expense
        current = self.api.get(expense_id)
        self.workflow.check(ExpenseAction.DELETE, current, actor)
        self.api.delete(expense_id)
        logger.info("Expense deleted", expense_id=expense_id)
        self.my_expenses.refresh_after_mutation()

    def history(self, expense_id: int) -> List[ApprovalHistoryEntry]:
        return self.api.history(expense_id)

    def download_attachment(self, attachment_id: int) -> AttachmentContent:
        return self.api.download_attachment(attachment_id)

    def categories(self) -> List[ExpenseCategory]:
        return self.api.categories()

    def can_mutate(self, expense: Expense) -> bool:
        return self.workflow.can_mutate(expense, self.session.user)

    def list_mine(self, page: Optional[int] = None, size: Optional[int] = None, sort=None):
        return self.my_expenses.fetch(page=page, size=size, sort=sort)
