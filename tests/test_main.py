"""Tests for the server loop: signal handling and exit codes."""

import asyncio
import os
import signal

import pytest
import uvicorn

from stdiogate.config import GatewayConfig
from stdiogate.main import (
    BridgeServer,
    create_app,
    install_signal_handlers,
    remove_signal_handlers,
    serve,
)


def _config(command: str) -> GatewayConfig:
    return GatewayConfig(stdio_command=command, host="127.0.0.1", port=0)


class TestSignalHandling:
    def test_server_leaves_signal_handlers_alone(self, make_bridge) -> None:
        bridge, _ = make_bridge()
        server = BridgeServer(uvicorn.Config(create_app(bridge, _config("x"))))
        before = signal.getsignal(signal.SIGTERM)
        with server.capture_signals():
            assert signal.getsignal(signal.SIGTERM) is before
        assert signal.getsignal(signal.SIGTERM) is before

    @pytest.mark.anyio
    async def test_sigterm_shuts_bridge_down(self, started_bridge) -> None:
        bridge, sup = started_bridge
        installed = install_signal_handlers(bridge)
        try:
            assert signal.SIGTERM in installed
            os.kill(os.getpid(), signal.SIGTERM)
            assert await asyncio.wait_for(bridge.wait_stopped(), timeout=5) == 0
        finally:
            remove_signal_handlers(installed)

        assert bridge.shutdown_reason == "signal"
        assert sup.kill_count == 1


class TestServe:
    @pytest.mark.anyio
    async def test_child_exit_code_becomes_exit_code(self) -> None:
        assert await asyncio.wait_for(serve(_config("exit 3")), timeout=20) == 3

    @pytest.mark.anyio
    async def test_sigterm_exits_cleanly(self) -> None:
        loop = asyncio.get_running_loop()
        loop.call_later(0.5, os.kill, os.getpid(), signal.SIGTERM)
        assert await asyncio.wait_for(serve(_config("sleep 30")), timeout=20) == 0
