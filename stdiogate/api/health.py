"""Liveness endpoints answering a plain ``ok``."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from stdiogate.config import GatewayConfig


def build_health_router(config: GatewayConfig) -> APIRouter:
    router = APIRouter(tags=["health"])

    async def health() -> PlainTextResponse:
        return PlainTextResponse("ok", headers=config.headers)

    for path in config.health_endpoints:
        router.add_api_route(path, health, methods=["GET"], response_class=PlainTextResponse)
    return router
