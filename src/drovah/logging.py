"""Structured logging for Drovah.

All log emission goes through structlog; stdlib logging only provides the
output handler (stdout, or a size-rotated file). Every entry can carry:

- a ``correlation_id`` taken from the webhook request that caused it
- ``project`` and ``build_number`` bound for the duration of a build

Typical setup::

    setup_logging(config.logging)
    logger = get_logger(__name__)
    bind_build_context("biomebot", 12)
    logger.info("build_recorded", status="passing")
"""

from __future__ import annotations

import contextvars
import logging
import logging.handlers
import sys
from typing import Any

import structlog

from drovah.config import LoggingConfig

# Library loggers that flood DEBUG output; raised to WARNING otherwise
NOISY_LOGGERS = ("git", "sqlalchemy.engine", "asyncio", "multipart")

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def add_correlation_id(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor adding the current correlation id, when one is set."""
    correlation_id = _correlation_id.get()
    if correlation_id is not None:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def bind_build_context(project: str, build_number: int | None = None) -> None:
    """Bind project (and optionally build number) to subsequent logs.

    Background build tasks copy the context of the request that spawned
    them, so the binding is local to one build run.
    """
    context: dict[str, Any] = {"project": project}
    if build_number is not None:
        context["build_number"] = build_number
    structlog.contextvars.bind_contextvars(**context)


def _make_handler(config: LoggingConfig) -> logging.Handler:
    if config.file is None:
        return logging.StreamHandler(sys.stdout)

    config.file.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        filename=config.file,
        maxBytes=config.rotation_size_mb * 1024 * 1024,
        backupCount=config.retention_count,
        encoding="utf-8",
    )


def setup_logging(config: LoggingConfig) -> None:
    """Configure structlog and the root handler from ``config``.

    Calling it again replaces the previous handler, so the CLI can
    re-run it after ``--verbose`` changes the level.
    """
    log_level = getattr(logging, config.level)

    handler = _make_handler(config)
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    library_level = logging.DEBUG if log_level == logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    renderer: Any
    if config.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.contextvars.merge_contextvars,
            add_correlation_id,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)
