"""Pydantic models for API error payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Machine-readable error code plus a human message."""

    code: str
    message: str
    details: Any = None


class ErrorResponse(BaseModel):
    """Envelope returned by every failed request."""

    error: ErrorDetail
