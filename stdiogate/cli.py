"""CLI entry point for stdiogate.

Import ordering is critical: flags are written to the environment and
``load_config()`` runs before importing ``stdiogate.main``, because that
module calls ``configure_logging()`` at import time.
"""

from __future__ import annotations

import argparse
import os

from stdiogate.settings import parse_header


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stdiogate",
        description="Expose a stdio JSON-RPC server to many clients over SSE",
    )
    parser.add_argument("--stdio", help="Shell command that runs the stdio server")
    parser.add_argument("--host", help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument("--base-url", help="Public base URL advertised to SSE clients")
    parser.add_argument("--sse-path", help="Path for the SSE stream (default: /sse)")
    parser.add_argument("--message-path", help="Path for POSTed messages (default: /message)")
    parser.add_argument(
        "--cors",
        nargs="*",
        action="append",
        metavar="ORIGIN",
        help="Enable CORS; bare --cors allows any origin. Repeatable.",
    )
    parser.add_argument(
        "--health-endpoint",
        action="append",
        default=[],
        metavar="PATH",
        help="Path that answers 'ok'. Repeatable.",
    )
    parser.add_argument(
        "--header",
        action="append",
        default=[],
        metavar="'NAME: VALUE'",
        help="Static response header. Repeatable.",
    )
    parser.add_argument("--oauth2-bearer", help="Token sent as 'Authorization: Bearer <token>'")
    parser.add_argument(
        "--idle-timeout-minutes",
        type=float,
        help="Exit after this many minutes without clients (0 disables)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Log level",
    )
    parser.add_argument("--log-format", choices=["console", "json"], help="Log renderer")
    return parser


def _cors_origins(groups: list[list[str]] | None) -> list[str]:
    if groups is None:
        return []
    origins = [origin for group in groups for origin in group]
    return origins or ["*"]


def apply_overrides(args: argparse.Namespace) -> None:
    """Write CLI flags into STDIOGATE_* env vars, ahead of any .env file."""
    simple = {
        "STDIOGATE_STDIO": args.stdio,
        "STDIOGATE_HOST": args.host,
        "STDIOGATE_PORT": args.port,
        "STDIOGATE_BASE_URL": args.base_url,
        "STDIOGATE_SSE_PATH": args.sse_path,
        "STDIOGATE_MESSAGE_PATH": args.message_path,
        "STDIOGATE_OAUTH2_BEARER": args.oauth2_bearer,
        "STDIOGATE_IDLE_TIMEOUT_MINUTES": args.idle_timeout_minutes,
        "STDIOGATE_LOG_LEVEL": args.log_level,
        "STDIOGATE_LOG_FORMAT": args.log_format,
    }
    for key, value in simple.items():
        if value is not None:
            os.environ[key] = str(value)

    origins = _cors_origins(args.cors)
    if origins:
        os.environ["STDIOGATE_CORS"] = ",".join(origins)
    if args.health_endpoint:
        os.environ["STDIOGATE_HEALTH_ENDPOINTS"] = ",".join(args.health_endpoint)
    if args.header:
        os.environ["STDIOGATE_HEADERS"] = ";".join(args.header)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point (``stdiogate`` command)."""
    parser = build_parser()
    args = parser.parse_args(argv)

    for raw in args.header:
        if parse_header(raw) is None:
            parser.error(f"invalid --header {raw!r}; expected 'Name: value'")

    apply_overrides(args)

    from stdiogate.config import load_config

    load_config()

    if not os.environ.get("STDIOGATE_STDIO", "").strip():
        parser.error("--stdio is required (or set STDIOGATE_STDIO)")

    from stdiogate.main import run

    run()


if __name__ == "__main__":
    main()
