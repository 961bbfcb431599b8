"""Expense approval state machine"""

from .expense_workflow import (
    EDITABLE_STATUSES,
    ExpenseAction,
    ExpenseWorkflow,
    Transition,
)

__all__ = ["EDITABLE_STATUSES", "ExpenseAction", "ExpenseWorkflow", "Transition"]
