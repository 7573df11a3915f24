"""SSE endpoint: each GET opens one client session on the bridge."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request
from starlette.responses import StreamingResponse

from stdiogate.api.deps import get_bridge
from stdiogate.bridge import Bridge, BridgeStoppedError
from stdiogate.config import GatewayConfig
from stdiogate.middleware import raise_http_error
from stdiogate.sse import SseSession, stream_response

logger = structlog.get_logger(__name__)


def build_events_router(config: GatewayConfig) -> APIRouter:
    router = APIRouter(tags=["events"])

    @router.get(config.sse_path)
    async def open_stream(
        request: Request,
        bridge: Bridge = Depends(get_bridge),
    ) -> StreamingResponse:
        """Register a new session and stream the child's messages to it."""
        session = SseSession(max_pending=config.session_queue_size)
        try:
            bridge.connect(session)
        except BridgeStoppedError:
            raise_http_error("UNAVAILABLE", "Bridge is shutting down", 503, headers=config.headers)
        logger.info(
            "New SSE connection",
            session_id=session.id,
            client=request.client.host if request.client else None,
        )
        return stream_response(
            session,
            endpoint_url=f"{config.message_endpoint}?sessionId={session.id}",
            on_close=bridge.disconnect,
            keepalive_s=config.sse_keepalive_seconds,
            headers=config.headers,
        )

    return router
