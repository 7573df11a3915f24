"""Composition of API routers."""

from __future__ import annotations

from fastapi import APIRouter

from stdiogate.api.events import build_events_router
from stdiogate.api.health import build_health_router
from stdiogate.api.messages import build_messages_router
from stdiogate.config import GatewayConfig


def build_router(config: GatewayConfig) -> APIRouter:
    """Routes live at configurable paths, so the router is built per config."""
    router = APIRouter()
    router.include_router(build_health_router(config))
    router.include_router(build_events_router(config))
    router.include_router(build_messages_router(config))
    return router
