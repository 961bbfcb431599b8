"""
Expense approval state machine.

Every transition is declared once in TRANSITIONS: which statuses it may start
from, which roles may invoke it from each of them, where it leads, and whether
the actor must own the expense or leave a comment. All eligibility checks in
the client go through ExpenseWorkflow so the policy lives in one place.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Union

from ..models.expense import Expense, ExpenseStatus
from ..models.user import Role, SessionUser
from ..utils.exceptions import ForbiddenAction, InvalidStateTransition, ValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ExpenseAction(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    EDIT = "edit"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: Union[str, "ExpenseAction"]) -> "ExpenseAction":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown action: {value}", field="action")


REVIEWER_ROLES: FrozenSet[Role] = frozenset({Role.MANAGER, Role.ADMIN})
FINANCE_REVIEWER_ROLES: FrozenSet[Role] = frozenset({Role.MANAGER, Role.ADMIN, Role.FINANCE})
ANY_ROLE: FrozenSet[Role] = frozenset()

EDITABLE_STATUSES: FrozenSet[ExpenseStatus] = frozenset({ExpenseStatus.SUBMITTED, ExpenseStatus.REJECTED})


@dataclass(frozen=True)
class Transition:
    action: ExpenseAction
    # source status (None for creation) -> roles allowed from it; empty = any authenticated actor
    sources: Dict[Optional[ExpenseStatus], FrozenSet[Role]]
    # None keeps the current status
    target: Optional[ExpenseStatus] = None
    owner_only: bool = False
    requires_comment: bool = False
    removes: bool = False
    # per-source overrides of `target`
    target_from: Dict[ExpenseStatus, ExpenseStatus] = field(default_factory=dict)

    def target_for(self, status: Optional[ExpenseStatus]) -> Optional[ExpenseStatus]:
        if self.removes:
            return None
        if status is not None and status in self.target_from:
            return self.target_from[status]
        if self.target is not None:
            return self.target
        return status


TRANSITIONS: Dict[ExpenseAction, Transition] = {
    ExpenseAction.SUBMIT: Transition(
        action=ExpenseAction.SUBMIT,
        sources={None: ANY_ROLE},
        target=ExpenseStatus.SUBMITTED,
    ),
    ExpenseAction.APPROVE: Transition(
        action=ExpenseAction.APPROVE,
        sources={
            ExpenseStatus.SUBMITTED: REVIEWER_ROLES,
            ExpenseStatus.PENDING_FINANCE_APPROVAL: FINANCE_REVIEWER_ROLES,
        },
        target=ExpenseStatus.APPROVED,
    ),
    ExpenseAction.REJECT: Transition(
        action=ExpenseAction.REJECT,
        sources={
            ExpenseStatus.SUBMITTED: REVIEWER_ROLES,
            ExpenseStatus.PENDING_FINANCE_APPROVAL: FINANCE_REVIEWER_ROLES,
        },
        target=ExpenseStatus.REJECTED,
        requires_comment=True,
    ),
    ExpenseAction.EDIT: Transition(
        action=ExpenseAction.EDIT,
        sources={status: ANY_ROLE for status in EDITABLE_STATUSES},
        owner_only=True,
        # Editing a rejected expense re-submits it
        target_from={ExpenseStatus.REJECTED: ExpenseStatus.SUBMITTED},
    ),
    ExpenseAction.DELETE: Transition(
        action=ExpenseAction.DELETE,
        sources={status: ANY_ROLE for status in EDITABLE_STATUSES},
        owner_only=True,
        removes=True,
    ),
}


class ExpenseWorkflow:
    """Legal states, transitions and the role policy for expenses"""

    def __init__(self, transitions: Optional[Dict[ExpenseAction, Transition]] = None):
        self.transitions = dict(transitions or TRANSITIONS)

    def transition(self, action: Union[str, ExpenseAction]) -> Transition:
        return self.transitions[ExpenseAction.parse(action)]

    @staticmethod
    def is_authorized(allowed: FrozenSet[Role], actor: Optional[SessionUser]) -> bool:
        """Role-set intersection; an empty allowed set admits any authenticated actor."""
        if actor is None:
            return False
        if not allowed:
            return True
        return bool(allowed & actor.role_set)

    # ------------------------------------------------------------------
    # Predicates for the UI
    # ------------------------------------------------------------------

    def can_mutate(self, expense: Expense, actor: Optional[SessionUser]) -> bool:
        """Owner may edit or delete while the expense is SUBMITTED or REJECTED."""
        return (
            actor is not None
            and expense.is_owned_by(actor.id)
            and expense.status in EDITABLE_STATUSES
        )

    def can_decide(self, expense: Expense, actor: Optional[SessionUser]) -> bool:
        allowed = self.transitions[ExpenseAction.APPROVE].sources.get(expense.status)
        return allowed is not None and self.is_authorized(allowed, actor)

    def can_review(self, actor: Optional[SessionUser]) -> bool:
        """Whether the actor should see the approval queue at all."""
        return self.is_authorized(FINANCE_REVIEWER_ROLES, actor)

    def allowed_actions(self, expense: Expense, actor: Optional[SessionUser]) -> List[ExpenseAction]:
        actions = []
        for action, transition in self.transitions.items():
            if action == ExpenseAction.SUBMIT:
                continue
            allowed = transition.sources.get(expense.status)
            if allowed is None or not self.is_authorized(allowed, actor):
                continue
            if transition.owner_only and not expense.is_owned_by(actor.id):
                continue
            actions.append(action)
        return actions

    # ------------------------------------------------------------------
    # Enforcement
    # ------------------------------------------------------------------

    def validate_comment(self, action: Union[str, ExpenseAction], comment: Optional[str]) -> Optional[str]:
        """Returns the stripped comment, or None when there is none to send."""
        transition = self.transition(action)
        text = comment.strip() if comment else ""
        if transition.requires_comment and not text:
            raise ValidationError(
                f"A comment is required to {transition.action.value} an expense",
                field="comments",
            )
        return text or None

    def check(
        self,
        action: Union[str, ExpenseAction],
        expense: Optional[Expense],
        actor: Optional[SessionUser],
        comment: Optional[str] = None,
    ) -> Optional[ExpenseStatus]:
        """
        Verify that `actor` may apply `action` to `expense` right now.

        Checks run in a fixed order: comment, then state, then ownership and
        role. Returns the status the expense will have afterwards.

        Raises:
            ValidationError: mandatory comment missing or blank
            InvalidStateTransition: action not legal from the current status
            ForbiddenAction: actor lacks ownership or role
        """
        transition = self.transition(action)
        self.validate_comment(transition.action, comment)

        status = expense.status if expense is not None else None
        if status not in transition.sources:
            logger.info(
                "Transition refused",
                action=transition.action.value,
                status=status.value if status else None,
            )
            raise InvalidStateTransition(
                f"Cannot {transition.action.value} an expense in status {status.value if status else 'none'}",
                status=status.value if status else None,
                action=transition.action.value,
            )

        if actor is None:
            raise ForbiddenAction(f"Sign in to {transition.action.value} expenses")
        if transition.owner_only and expense is not None and not expense.is_owned_by(actor.id):
            raise ForbiddenAction(f"Only the owner may {transition.action.value} this expense")
        if not self.is_authorized(transition.sources[status], actor):
            raise ForbiddenAction(
                f"Role not permitted to {transition.action.value} expenses in status {status.value}"
            )
        return transition.target_for(status)

    def target_status(self, action: Union[str, ExpenseAction], status: Optional[ExpenseStatus]) -> Optional[ExpenseStatus]:
        return self.transition(action).target_for(status)
