"""REST API access: the gateway and the endpoint wrappers built on it"""

from .auth_api import AuthApi, UserApi
from .expense_api import ExpenseApi
from .gateway import HttpGateway

__all__ = ["AuthApi", "ExpenseApi", "HttpGateway", "UserApi"]
