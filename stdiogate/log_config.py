"""Structlog setup for the gateway.

Everything goes to stderr. Uvicorn's own loggers share the handler, but its
per-request access lines are muted below DEBUG because
``request_logging_middleware`` already logs each request with its
``request_id`` and ``session_id``.
"""

from __future__ import annotations

import logging
import logging.config

import structlog

from stdiogate.settings import settings

_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog and stdlib logging.

    Args:
        level: Level name; defaults to ``STDIOGATE_LOG_LEVEL``.
        log_format: ``console`` or ``json``; defaults to ``STDIOGATE_LOG_FORMAT``.
    """
    log_level = getattr(logging, (level or settings.log_level()).upper(), logging.INFO)
    renderer = _renderer((log_format or settings.log_format()).lower())

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=shared_processors
        + [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    access_level = log_level if log_level <= logging.DEBUG else logging.WARNING
    loggers = {
        name: {
            "handlers": ["stderr"],
            "level": access_level if name == "uvicorn.access" else log_level,
            "propagate": False,
        }
        for name in _UVICORN_LOGGERS
    }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"structlog": {"()": lambda: formatter}},
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "structlog",
                    "stream": "ext://sys.stderr",
                }
            },
            "root": {"handlers": ["stderr"], "level": log_level},
            "loggers": loggers,
        }
    )
