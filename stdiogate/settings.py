"""Centralized environment configuration for the stdiogate bridge.

All environment variables are read through this module using the STDIOGATE_
prefix for consistency. The CLI writes its flags into the environment before
anything here is read, so flags and env vars share one code path.

Usage:
    from stdiogate.settings import settings

    port = settings.port()
    command = settings.stdio_command()
"""

from __future__ import annotations

import os


def _get(name: str, default: str = "") -> str:
    """Get an environment variable value."""
    return os.environ.get(name, "").strip() or default


def _get_int(name: str, default: int = 0) -> int:
    """Get an integer environment variable."""
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(name: str, default: float = 0.0) -> float:
    """Get a float environment variable."""
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_list(name: str, sep: str = ",") -> list[str]:
    """Get a separator-delimited list, skipping empty items."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return []
    return [part.strip() for part in raw.split(sep) if part.strip()]


def parse_header(raw: str) -> tuple[str, str] | None:
    """Split a ``Name: value`` header spec, or None when malformed."""
    name, sep, value = raw.partition(":")
    name = name.strip()
    if not sep or not name:
        return None
    return name, value.strip()


class Settings:
    """Centralized settings for the bridge.

    Environment variables use the STDIOGATE_ prefix.
    """

    # -------------------------------------------------------------------------
    # Subprocess
    # -------------------------------------------------------------------------

    @staticmethod
    def stdio_command() -> str:
        """Shell command line of the stdio subprocess to bridge.

        Env: STDIOGATE_STDIO
        """
        return _get("STDIOGATE_STDIO")

    # -------------------------------------------------------------------------
    # HTTP server
    # -------------------------------------------------------------------------

    @staticmethod
    def host() -> str:
        """Host to bind the HTTP server to.

        Env: STDIOGATE_HOST (default: 0.0.0.0)
        """
        return _get("STDIOGATE_HOST", default="0.0.0.0")

    @staticmethod
    def port() -> int:
        """Port to bind the HTTP server to.

        Env: STDIOGATE_PORT (default: 8000)
        """
        return _get_int("STDIOGATE_PORT", default=8000)

    @staticmethod
    def base_url() -> str:
        """Public base URL prepended to the message endpoint advertised to clients.

        Empty means clients receive a path relative to the server they reached.

        Env: STDIOGATE_BASE_URL
        """
        return _get("STDIOGATE_BASE_URL").rstrip("/")

    @staticmethod
    def sse_path() -> str:
        """Path clients GET to open their event stream.

        Env: STDIOGATE_SSE_PATH (default: /sse)
        """
        return _get("STDIOGATE_SSE_PATH", default="/sse")

    @staticmethod
    def message_path() -> str:
        """Path clients POST JSON-RPC messages to.

        Env: STDIOGATE_MESSAGE_PATH (default: /message)
        """
        return _get("STDIOGATE_MESSAGE_PATH", default="/message")

    @staticmethod
    def cors_origins() -> list[str]:
        """Comma-separated allowed CORS origins. Empty disables CORS.

        Env: STDIOGATE_CORS (e.g. "*" or "https://a.example,https://b.example")
        """
        return _get_list("STDIOGATE_CORS")

    @staticmethod
    def health_endpoints() -> list[str]:
        """Comma-separated paths that answer ``ok`` for liveness probes.

        Env: STDIOGATE_HEALTH_ENDPOINTS (e.g. "/healthz,/readyz")
        """
        return _get_list("STDIOGATE_HEALTH_ENDPOINTS")

    @staticmethod
    def headers() -> dict[str, str]:
        """Static response headers applied to every bridge endpoint.

        Semicolon-separated ``Name: value`` pairs. Malformed entries are ignored.

        Env: STDIOGATE_HEADERS (e.g. "X-Env: prod; X-Team: infra")
        """
        out: dict[str, str] = {}
        for item in _get_list("STDIOGATE_HEADERS", sep=";"):
            parsed = parse_header(item)
            if parsed:
                out[parsed[0]] = parsed[1]
        bearer = Settings.oauth2_bearer()
        if bearer:
            out["Authorization"] = f"Bearer {bearer}"
        return out

    @staticmethod
    def oauth2_bearer() -> str:
        """Bearer token added as an ``Authorization`` response header.

        Env: STDIOGATE_OAUTH2_BEARER
        """
        return _get("STDIOGATE_OAUTH2_BEARER")

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    @staticmethod
    def idle_timeout_minutes() -> float:
        """Minutes with no connected clients before the bridge exits. 0 disables.

        Env: STDIOGATE_IDLE_TIMEOUT_MINUTES (default: 0)
        """
        value = _get_float("STDIOGATE_IDLE_TIMEOUT_MINUTES", default=0.0)
        return value if value > 0 else 0.0

    @staticmethod
    def sse_keepalive_seconds() -> float:
        """Seconds of silence before a keepalive comment is sent on a stream.

        Env: STDIOGATE_SSE_KEEPALIVE_SECONDS (default: 15)
        """
        return _get_float("STDIOGATE_SSE_KEEPALIVE_SECONDS", default=15.0)

    @staticmethod
    def session_queue_size() -> int:
        """Maximum undelivered events buffered per client before it is dropped.

        Env: STDIOGATE_SESSION_QUEUE_SIZE (default: 1000)
        """
        return _get_int("STDIOGATE_SESSION_QUEUE_SIZE", default=1000)

    # -------------------------------------------------------------------------
    # Logging Settings
    # -------------------------------------------------------------------------

    @staticmethod
    def log_level() -> str:
        """Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).

        Env: STDIOGATE_LOG_LEVEL (default: INFO)
        """
        return _get("STDIOGATE_LOG_LEVEL", default="INFO").upper()

    @staticmethod
    def log_format() -> str:
        """Log format: "console" for dev-friendly, "json" for structured.

        Env: STDIOGATE_LOG_FORMAT (default: console)
        """
        return _get("STDIOGATE_LOG_FORMAT", default="console").lower()


# Singleton instance for convenient imports
settings = Settings()
