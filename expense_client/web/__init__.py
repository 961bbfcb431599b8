"""Loopback HTTP surface for the OAuth landing page"""

from .oauth_routes import create_landing_app, create_oauth_router

__all__ = ["create_landing_app", "create_oauth_router"]
