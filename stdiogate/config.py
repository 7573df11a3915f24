"""Environment configuration loader for stdiogate.

Loads settings from layered .env files into ``os.environ`` and snapshots the
result into a :class:`GatewayConfig` for the bridge and the HTTP app.

Precedence (highest wins):
    1. Already-set environment variables (including CLI flags)
    2. Local ``.env`` file (cwd)
    3. ``~/.config/stdiogate/config.env`` (XDG_CONFIG_HOME respected)
    4. Built-in defaults
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from stdiogate.settings import Settings, settings


def config_dir() -> Path:
    """Return the stdiogate config directory (XDG_CONFIG_HOME/stdiogate)."""
    base = os.environ.get("XDG_CONFIG_HOME", "").strip()
    if not base:
        base = os.path.join(Path.home(), ".config")
    return Path(base) / "stdiogate"


def parse_env_file(path: str | Path) -> dict[str, str]:
    """Parse a .env file and return a dict of key-value pairs.

    Supports:
        - KEY=value
        - KEY="value" and KEY='value' (quotes stripped)
        - export KEY=value
        - # comments and blank lines
        - Inline comments after unquoted values
    """
    result: dict[str, str] = {}
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return result

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[7:].strip()

        eq = line.find("=")
        if eq < 1:
            continue

        key = line[:eq].strip()
        value = line[eq + 1 :].strip()

        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        else:
            for i, ch in enumerate(value):
                if ch == "#" and (i == 0 or value[i - 1] == " "):
                    value = value[:i].rstrip()
                    break

        result[key] = value

    return result


def load_config() -> None:
    """Load configuration from .env files into ``os.environ``.

    Already-set environment variables are never overwritten.
    """
    merged: dict[str, str] = {}
    merged.update(parse_env_file(config_dir() / "config.env"))
    merged.update(parse_env_file(Path.cwd() / ".env"))

    for key, value in merged.items():
        if key not in os.environ:
            os.environ[key] = value


def _normalize_path(path: str) -> str:
    return path if path.startswith("/") else f"/{path}"


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable snapshot of everything the bridge and its HTTP surface consume."""

    stdio_command: str
    host: str = "0.0.0.0"
    port: int = 8000
    base_url: str = ""
    sse_path: str = "/sse"
    message_path: str = "/message"
    cors_origins: list[str] = field(default_factory=list)
    health_endpoints: list[str] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)
    idle_timeout_minutes: float = 0.0
    sse_keepalive_seconds: float = 15.0
    session_queue_size: int = 1000

    @property
    def idle_timeout_seconds(self) -> float:
        return self.idle_timeout_minutes * 60.0

    @property
    def message_endpoint(self) -> str:
        """URL advertised to clients in the SSE ``endpoint`` event."""
        return f"{self.base_url}{self.message_path}"

    @classmethod
    def from_settings(cls, source: Settings = settings) -> GatewayConfig:
        return cls(
            stdio_command=source.stdio_command(),
            host=source.host(),
            port=source.port(),
            base_url=source.base_url(),
            sse_path=_normalize_path(source.sse_path()),
            message_path=_normalize_path(source.message_path()),
            cors_origins=source.cors_origins(),
            health_endpoints=[_normalize_path(p) for p in source.health_endpoints()],
            headers=source.headers(),
            idle_timeout_minutes=source.idle_timeout_minutes(),
            sse_keepalive_seconds=source.sse_keepalive_seconds(),
            session_queue_size=source.session_queue_size(),
        )
