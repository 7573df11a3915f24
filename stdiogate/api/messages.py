"""Message endpoint: clients POST JSON-RPC messages for the child here."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from stdiogate.api.deps import get_bridge
from stdiogate.bridge import Bridge, SubmitResult
from stdiogate.config import GatewayConfig
from stdiogate.middleware import raise_http_error

logger = structlog.get_logger(__name__)


def build_messages_router(config: GatewayConfig) -> APIRouter:
    router = APIRouter(tags=["messages"])

    @router.post(config.message_path, status_code=202, response_class=PlainTextResponse)
    async def post_message(
        request: Request,
        session_id: str | None = Query(default=None, alias="sessionId"),
        bridge: Bridge = Depends(get_bridge),
    ) -> PlainTextResponse:
        """Forward one message from a connected session to the child's stdin."""
        if not session_id:
            raise_http_error(
                "VALIDATION_ERROR", "Missing sessionId parameter", 400, headers=config.headers
            )
        if not bridge.has_session(session_id):
            raise_http_error(
                "NO_SESSION",
                f"No active SSE connection for session {session_id}",
                503,
                headers=config.headers,
            )

        raw = await request.body()
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Rejected malformed message", session_id=session_id, error=str(exc))
            raise_http_error(
                "VALIDATION_ERROR", f"Invalid JSON payload: {exc}", 400, headers=config.headers
            )

        result = await bridge.submit(session_id, message)
        if result is SubmitResult.NO_SESSION:
            raise_http_error(
                "NO_SESSION",
                f"No active SSE connection for session {session_id}",
                503,
                headers=config.headers,
            )
        if result is SubmitResult.PROCESS_UNAVAILABLE:
            raise_http_error(
                "UNAVAILABLE", "Subprocess is not accepting input", 503, headers=config.headers
            )
        logger.info("Forwarded message to child", session_id=session_id)
        return PlainTextResponse("Accepted", status_code=202, headers=config.headers)

    return router
