"""FastAPI application and server entrypoint for the bridge."""

from __future__ import annotations

import asyncio
import signal
import sys
from collections.abc import Iterator
from contextlib import contextmanager, suppress

import structlog
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from stdiogate.api import build_router
from stdiogate.bridge import Bridge
from stdiogate.config import GatewayConfig
from stdiogate.log_config import configure_logging
from stdiogate.middleware import (
    http_exception_handler,
    request_logging_middleware,
    validation_exception_handler,
)

configure_logging()
logger = structlog.get_logger(__name__)

GRACEFUL_SHUTDOWN_SECONDS = 5


def create_app(bridge: Bridge, config: GatewayConfig) -> FastAPI:
    """Build the HTTP surface around an already constructed bridge."""
    app = FastAPI(title="stdiogate")
    app.state.bridge = bridge
    app.state.config = config

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.middleware("http")(request_logging_middleware)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(build_router(config))
    return app


def _log_startup(config: GatewayConfig) -> None:
    logger.info(
        "Starting stdio to SSE bridge",
        stdio=config.stdio_command,
        port=config.port,
        base_url=config.base_url or None,
        sse_path=config.sse_path,
        message_path=config.message_path,
        cors=config.cors_origins or "disabled",
        health_endpoints=config.health_endpoints or None,
        headers=sorted(config.headers) or None,
        idle_timeout_minutes=config.idle_timeout_minutes or "disabled",
    )


class BridgeServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the bridge.

    Stock uvicorn captures the signals itself and re-raises them once
    ``serve()`` returns, which kills the process before the child is reaped.
    """

    @contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


def install_signal_handlers(bridge: Bridge) -> list[signal.Signals]:
    """Route SIGINT/SIGTERM to a clean bridge shutdown; returns what was installed."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):  # Windows lacks add_signal_handler
            loop.add_signal_handler(sig, _on_signal, bridge, sig)
            installed.append(sig)
    return installed


def remove_signal_handlers(signals: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in signals:
        loop.remove_signal_handler(sig)


def _on_signal(bridge: Bridge, sig: signal.Signals) -> None:
    logger.info("Received signal", signal=sig.name)
    bridge.shutdown("signal", 0)


async def serve(config: GatewayConfig) -> int:
    """Run the bridge and its HTTP server until shutdown; return the exit code."""
    bridge = Bridge(config.stdio_command, idle_seconds=config.idle_timeout_seconds)
    app = create_app(bridge, config)
    server = BridgeServer(
        uvicorn.Config(
            app,
            host=config.host,
            port=config.port,
            lifespan="off",
            log_config=None,
            timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_SECONDS,
        )
    )

    # Shutdown closes every session first, so open SSE streams end
    # before uvicorn waits on them.
    def _stop_server() -> None:
        server.should_exit = True

    bridge.add_shutdown_hook(_stop_server)
    signals = install_signal_handlers(bridge)
    _log_startup(config)

    try:
        await bridge.start()
        logger.info(
            "Listening",
            port=config.port,
            sse_endpoint=f"http://localhost:{config.port}{config.sse_path}",
            message_endpoint=f"http://localhost:{config.port}{config.message_path}",
        )
        await server.serve()
    finally:
        bridge.shutdown("server stopped", 0)
        await bridge.close()
        remove_signal_handlers(signals)
    exit_code = bridge.exit_code or 0
    logger.info("Bridge exited", reason=bridge.shutdown_reason, exit_code=exit_code)
    return exit_code


def run() -> None:
    """Entry point once configuration has been loaded into the environment."""
    config = GatewayConfig.from_settings()
    if not config.stdio_command:
        logger.error("No stdio command configured (set --stdio or STDIOGATE_STDIO)")
        sys.exit(2)
    sys.exit(asyncio.run(serve(config)))


if __name__ == "__main__":
    run()
