"""Helpers for producing server-sent event (SSE) responses."""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any

import structlog
from starlette.responses import StreamingResponse

logger = structlog.get_logger(__name__)

SSE_KEEPALIVE_SECONDS = 15.0

_CLOSED = object()


def sse_event(data: Any, *, event: str | None = None) -> str:
    """Serialize an event payload into SSE wire format.

    Strings are sent as-is; anything else is encoded as compact JSON.
    """
    payload = data if isinstance(data, str) else json.dumps(data, separators=(",", ":"))
    lines = [f"event: {event}"] if event else []
    lines.extend(f"data: {part}" for part in payload.split("\n"))
    return "\n".join(lines) + "\n\n"


class SseSession:
    """One client's event stream, fed by the bridge through :meth:`deliver`.

    Undelivered events are buffered up to ``max_pending``; a client that falls
    further behind is reported as a failed delivery and gets dropped.
    """

    def __init__(self, session_id: str | None = None, *, max_pending: int = 1000) -> None:
        self.id = session_id or uuid.uuid4().hex
        self._max_pending = max_pending
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def deliver(self, message: Any) -> bool:
        if self._closed:
            return False
        if self._max_pending and self._queue.qsize() >= self._max_pending:
            logger.warning(
                "SSE client too far behind",
                session_id=self.id,
                pending=self._queue.qsize(),
            )
            return False
        self._queue.put_nowait(message)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def next_message(self) -> Any:
        return await self._queue.get()


async def sse_stream(
    session: SseSession,
    *,
    endpoint_url: str,
    on_close: Callable[[str], None],
    keepalive_s: float = SSE_KEEPALIVE_SECONDS,
) -> AsyncIterator[bytes]:
    """Stream SSE events for one session as UTF-8 bytes.

    The first event tells the client where to POST its messages. ``on_close``
    runs exactly once when the stream ends, whatever the reason.
    """
    try:
        yield sse_event(endpoint_url, event="endpoint").encode("utf-8")
        while True:
            try:
                item = await asyncio.wait_for(session.next_message(), timeout=keepalive_s)
            except asyncio.TimeoutError:
                yield b": keepalive\n\n"
                continue
            if item is _CLOSED:
                break
            yield sse_event(item, event="message").encode("utf-8")
    finally:
        on_close(session.id)


def stream_response(
    session: SseSession,
    *,
    endpoint_url: str,
    on_close: Callable[[str], None],
    keepalive_s: float = SSE_KEEPALIVE_SECONDS,
    headers: Mapping[str, str] | None = None,
) -> StreamingResponse:
    """Build a StreamingResponse for one session's SSE feed."""
    return StreamingResponse(
        sse_stream(
            session,
            endpoint_url=endpoint_url,
            on_close=on_close,
            keepalive_s=keepalive_s,
        ),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            **(headers or {}),
        },
    )
