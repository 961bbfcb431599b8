"""Expense management client: session, OAuth hand-off, approval workflow"""

__version__ = "1.0.0"

from .app import ExpenseClient

__all__ = ["ExpenseClient", "__version__"]
