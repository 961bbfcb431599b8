"""
FastAPI routes for the OAuth landing page.

The client runs a small loopback server so the provider's redirect and the
popup's hand-off message have somewhere to arrive:

    GET  /oauth2/redirect?token=...|error=...   full-page redirect path
    POST /oauth2/message                        popup path, Origin-checked
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..app import ExpenseClient
from ..utils.logger import get_logger

logger = get_logger(__name__)


def create_oauth_router(client: ExpenseClient) -> APIRouter:
    router = APIRouter(tags=["oauth"])
    redirect_path = client.settings.routes.oauth_redirect

    @router.get(redirect_path)
    async def oauth_redirect(token: Optional[str] = None, error: Optional[str] = None) -> Dict[str, Any]:
        """
        Landing route for the full-page redirect.

        Response:
            {"route": "<where the client navigated>", "authenticated": bool}
        """
        route = client.oauth_redirect.handle(token=token, error=error)
        return {"route": route, "authenticated": client.session.is_authenticated}

    @router.post("/oauth2/message")
    async def oauth_message(request: Request) -> JSONResponse:
        """
        Hand-off message from the popup.

        Body is {kind, credential|reason} or {type, token|message}. The
        Origin header must match the configured authorization origin.
        """
        flow = client.oauth_flow
        if flow is None or not flow.active:
            return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"error": "no_active_flow"})
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "invalid_json"})

        origin = request.headers.get("origin")
        if not flow.channel.accepts_origin(origin):
            logger.warning("Rejected hand-off message", origin=origin)
            return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": "origin_not_allowed"})
        if not flow.post_message(origin, body):
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "message_rejected"})
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content={"status": "accepted"})

    return router


def create_landing_app(client: ExpenseClient) -> FastAPI:
    app = FastAPI(title="Expense client OAuth landing", docs_url=None, redoc_url=None)
    app.include_router(create_oauth_router(client))

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "ok", "authenticated": client.session.is_authenticated}

    return app
