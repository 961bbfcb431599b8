"""Core client plumbing shared with the UI collaborator"""

from .navigation import Navigator, RouteDecision, guard_private_route, guard_public_route

__all__ = [
    "Navigator",
    "RouteDecision",
    "guard_private_route",
    "guard_public_route",
]
