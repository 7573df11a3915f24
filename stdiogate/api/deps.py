"""Request-scoped access to the running bridge."""

from __future__ import annotations

from fastapi import Request

from stdiogate.bridge import Bridge


def get_bridge(request: Request) -> Bridge:
    return request.app.state.bridge
