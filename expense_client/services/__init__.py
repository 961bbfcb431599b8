"""Feature services driven by the UI collaborator"""

from .approval_coordinator import ApprovalCoordinator
from .expense_service import ExpenseService, build_request
from .pagination import PaginatedResourceFetcher
from .profile_service import ProfileService

__all__ = [
    "ApprovalCoordinator",
    "ExpenseService",
    "PaginatedResourceFetcher",
    "ProfileService",
    "build_request",
]
