"""Approval queue and decisions for reviewers"""

from typing import Optional, Sequence, Union

from ..api.expense_api import ExpenseApi
from ..auth.session import SessionManager
from ..models.expense import Expense
from ..models.page import Page
from ..utils.exceptions import ValidationError
from ..utils.logger import get_logger
from ..workflow.expense_workflow import ExpenseAction, ExpenseWorkflow
from .pagination import PaginatedResourceFetcher

logger = get_logger(__name__)

DEFAULT_SORT = ("createdAt,asc",)

DECISIONS = (ExpenseAction.APPROVE, ExpenseAction.REJECT)


class ApprovalCoordinator:
    """
    Fetches the pending queue and applies approve/reject decisions.

    The queue is never patched locally: a successful decision re-fetches the
    current page, and a failed one leaves it exactly as it was.
    """

    def __init__(
        self,
        api: ExpenseApi,
        session: SessionManager,
        workflow: ExpenseWorkflow,
        page_size: int = 10,
        sort: Sequence[str] = DEFAULT_SORT,
    ):
        self.api = api
        self.session = session
        self.workflow = workflow
        self.queue: PaginatedResourceFetcher[Expense] = PaginatedResourceFetcher(
            api.list_pending, page_size=page_size, sort=sort, name="pending_approvals"
        )

    def list_pending(
        self,
        page: Optional[int] = None,
        size: Optional[int] = None,
        sort: Optional[Sequence[str]] = None,
    ) -> Page[Expense]:
        """Expenses awaiting the caller's decision, oldest first unless sorted otherwise."""
        return self.queue.fetch(page=page, size=size, sort=sort)

    def _queued(self, expense_id: int) -> Optional[Expense]:
        page = self.queue.current_page
        if page is None:
            return None
        return next((e for e in page.content if e.id == expense_id), None)

    def decide(
        self,
        expense_id: int,
        action: Union[str, ExpenseAction],
        comment: Optional[str] = None,
    ) -> Expense:
        """
        Approve or reject one expense.

        A missing rejection comment fails before any network call. A failed decision
        call propagates unchanged; a failed queue re-fetch afterwards is only
        logged.
        """
        action = ExpenseAction.parse(action)
        if action not in DECISIONS:
            raise ValidationError(f"Not a decision: {action.value}", field="action")

        comments = self.workflow.validate_comment(action, comment)
        actor = self.session.require_user()

        queued = self._queued(expense_id)
        if queued is not None:
            self.workflow.check(action, queued, actor, comments)

        if action == ExpenseAction.APPROVE:
            result = self.api.approve(expense_id, comments)
        else:
            result = self.api.reject(expense_id, comments)

        logger.info(
            "Expense decided",
            expense_id=expense_id,
            action=action.value,
            status=result.status.value,
            approver_id=actor.id,
        )
        self.queue.refresh_after_mutation()
        return result

    def approve(self, expense_id: int, comment: Optional[str] = None) -> Expense:
        return self.decide(expense_id, ExpenseAction.APPROVE, comment)

    def reject(self, expense_id: int, comment: str) -> Expense:
        return self.decide(expense_id, ExpenseAction.REJECT, comment)

    def can_review(self) -> bool:
        return self.workflow.can_review(self.session.user)
