"""
Route state shared with the UI collaborator.

The client never renders anything; it only decides where the UI should be
and records it here. Views read `current_route` and render accordingly.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import List, Optional
from urllib.parse import urlencode, urlparse

from ..utils.logger import get_logger

logger = get_logger(__name__)

LOGIN_ROUTE = "/login"
DASHBOARD_ROUTE = "/dashboard"

OAUTH_FAILED = "oauth_failed"


class RouteDecision(str, Enum):
    LOADING = "loading"
    ALLOW = "allow"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_DASHBOARD = "redirect_dashboard"


def route_path(route: str) -> str:
    return urlparse(route).path or "/"


def with_error(route: str, error: str) -> str:
    return f"{route}?{urlencode({'error': error})}"


class Navigator:
    """In-process router: current route plus history"""

    def __init__(self, initial_route: str = "/"):
        self._lock = threading.Lock()
        self._history: List[str] = [initial_route]

    @property
    def current_route(self) -> str:
        return self._history[-1]

    @property
    def history(self) -> List[str]:
        return list(self._history)

    def is_at(self, route: str) -> bool:
        return route_path(self.current_route) == route_path(route)

    def navigate(self, route: str, replace: bool = False) -> None:
        with self._lock:
            if replace:
                self._history[-1] = route
            else:
                self._history.append(route)
        logger.debug("Navigated", route=route, replace=replace)


def guard_private_route(session) -> RouteDecision:
    """Decision for pages behind login."""
    if session.loading:
        return RouteDecision.LOADING
    return RouteDecision.ALLOW if session.is_authenticated else RouteDecision.REDIRECT_LOGIN


def guard_public_route(session) -> RouteDecision:
    """Decision for login/register: signed-in users go to the dashboard."""
    if session.loading:
        return RouteDecision.LOADING
    return RouteDecision.REDIRECT_DASHBOARD if session.is_authenticated else RouteDecision.ALLOW


def apply_guard(navigator: Navigator, decision: RouteDecision,
                login_route: str = LOGIN_ROUTE,
                landing_route: str = DASHBOARD_ROUTE) -> Optional[str]:
    """Navigate according to a guard decision; returns the new route, if any."""
    if decision == RouteDecision.REDIRECT_LOGIN:
        navigator.navigate(login_route, replace=True)
        return login_route
    if decision == RouteDecision.REDIRECT_DASHBOARD:
        navigator.navigate(landing_route, replace=True)
        return landing_route
    return None
