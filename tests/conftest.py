"""Shared pytest fixtures for stdiogate tests."""

import os
from typing import AsyncGenerator, Callable

import httpx
import pytest

# Keep the developer's shell configuration out of the tests.
for k in list(os.environ):
    if k.startswith("STDIOGATE_"):
        os.environ.pop(k, None)

from stdiogate.bridge import Bridge
from stdiogate.config import GatewayConfig
from stdiogate.main import create_app


class FakeTimer:
    """Timer handle returned by FakeScheduler."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Records call_later requests; tests fire timers by hand."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire(self, timer: FakeTimer) -> None:
        """Simulate the span elapsing; cancelled timers never run."""
        if timer.cancelled:
            return
        timer.fired = True
        timer.callback()


class FakeSupervisor:
    """Stands in for ProcessSupervisor without spawning anything."""

    def __init__(self, on_stdout, on_exit) -> None:
        self.on_stdout = on_stdout
        self.on_exit = on_exit
        self.command: str | None = None
        self.written = bytearray()
        self.accept_writes = True
        self.kill_count = 0
        self.stopped = False
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, command: str) -> None:
        self.command = command
        self._running = True

    def write(self, data: bytes) -> bool:
        if not self._running or not self.accept_writes:
            return False
        self.written += data
        return True

    async def drain(self) -> bool:
        return self.accept_writes

    def kill(self) -> None:
        self.kill_count += 1
        self._running = False

    async def stop(self) -> None:
        self.stopped = True
        self._running = False

    async def emit(self, data: bytes) -> None:
        """Pretend the child wrote ``data`` to stdout."""
        await self.on_stdout(data)

    def exit(self, code: int) -> None:
        self._running = False
        self.on_exit(code)


class FakeSession:
    """Session that records deliveries and can be told to fail."""

    def __init__(self, session_id: str, *, fail: bool = False, raises: bool = False) -> None:
        self.id = session_id
        self.received: list = []
        self.fail = fail
        self.raises = raises
        self.attempts = 0
        self.closed = False

    async def deliver(self, message) -> bool:
        self.attempts += 1
        if self.raises:
            raise ConnectionResetError("client went away")
        if self.fail:
            return False
        self.received.append(message)
        return True

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def make_bridge(scheduler: FakeScheduler):
    """Factory returning ``(bridge, fake_supervisor)`` pairs."""

    def _make(idle_seconds: float = 0.0, command: str = "fake-server") -> tuple[Bridge, FakeSupervisor]:
        created: list[FakeSupervisor] = []

        def factory(on_stdout, on_exit) -> FakeSupervisor:
            sup = FakeSupervisor(on_stdout, on_exit)
            created.append(sup)
            return sup

        bridge = Bridge(
            command,
            idle_seconds=idle_seconds,
            scheduler=scheduler,
            supervisor_factory=factory,
        )
        return bridge, created[0]

    return _make


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(
        stdio_command="fake-server",
        health_endpoints=["/healthz"],
        headers={"X-Gateway": "stdiogate"},
    )


@pytest.fixture
async def started_bridge(make_bridge) -> tuple[Bridge, FakeSupervisor]:
    bridge, sup = make_bridge()
    await bridge.start()
    return bridge, sup


@pytest.fixture
async def api_client(
    started_bridge, gateway_config: GatewayConfig
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP client bound to an app around the fake-supervised bridge."""
    bridge, _ = started_bridge
    app = create_app(bridge, gateway_config)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force the AnyIO pytest plugin to run tests under asyncio.

    The bridge is asyncio-native (subprocess pipes, loop.call_later), which
    the trio backend cannot drive.
    """
    return "asyncio"
