"""Tests for SSE formatting, per-client sessions and the stream generator."""

import pytest

from stdiogate.sse import SseSession, sse_event, sse_stream


class TestSseEvent:
    def test_dict_payload_is_compact_json(self) -> None:
        assert sse_event({"id": 1, "result": "ok"}) == 'data: {"id":1,"result":"ok"}\n\n'

    def test_named_event(self) -> None:
        assert sse_event("/message?sessionId=abc", event="endpoint") == (
            "event: endpoint\ndata: /message?sessionId=abc\n\n"
        )

    def test_multiline_string_split_into_data_lines(self) -> None:
        assert sse_event("a\nb") == "data: a\ndata: b\n\n"


class TestSseSession:
    @pytest.mark.anyio
    async def test_deliver_queues_messages(self) -> None:
        session = SseSession("abc")
        assert await session.deliver({"id": 1})
        assert session.pending == 1
        assert await session.next_message() == {"id": 1}

    @pytest.mark.anyio
    async def test_generated_ids_are_unique(self) -> None:
        assert SseSession().id != SseSession().id

    @pytest.mark.anyio
    async def test_deliver_after_close_fails(self) -> None:
        session = SseSession()
        session.close()
        session.close()
        assert session.closed
        assert await session.deliver({"id": 1}) is False

    @pytest.mark.anyio
    async def test_slow_client_rejected_when_full(self) -> None:
        session = SseSession(max_pending=2)
        assert await session.deliver(1)
        assert await session.deliver(2)
        assert await session.deliver(3) is False

    @pytest.mark.anyio
    async def test_close_wakes_full_queue(self) -> None:
        session = SseSession(max_pending=1)
        await session.deliver(1)
        session.close()
        assert session.pending == 2


class TestSseStream:
    @pytest.mark.anyio
    async def test_endpoint_then_messages_then_close(self) -> None:
        session = SseSession("abc")
        closed: list[str] = []
        await session.deliver({"id": 1, "result": "ok"})
        session.close()

        frames = [
            frame
            async for frame in sse_stream(
                session,
                endpoint_url="/message?sessionId=abc",
                on_close=closed.append,
            )
        ]

        assert frames == [
            b"event: endpoint\ndata: /message?sessionId=abc\n\n",
            b'event: message\ndata: {"id":1,"result":"ok"}\n\n',
        ]
        assert closed == ["abc"]

    @pytest.mark.anyio
    async def test_keepalive_on_silence(self) -> None:
        session = SseSession("abc")
        closed: list[str] = []
        stream = sse_stream(
            session,
            endpoint_url="/message?sessionId=abc",
            on_close=closed.append,
            keepalive_s=0.01,
        )
        assert (await stream.__anext__()).startswith(b"event: endpoint")
        assert await stream.__anext__() == b": keepalive\n\n"
        await stream.aclose()
        assert closed == ["abc"]
