"""Structured logging configuration using structlog.

JSON lines outside development, colored console output in development.
Two pieces of context ride along on every entry:

    - request_id, bound by the API middleware for each HTTP request
    - escrow_id, bound by escrow_context() for the duration of a workflow step

so one submission can be followed from upload through scoring to settlement.

Usage:
    from verified_escrow.logging_config import escrow_context, get_logger, setup_logging
    setup_logging(log_level="DEBUG", json_logs=False)
    logger = get_logger(__name__)
    with escrow_context("esc-42"):
        logger.info("escrow.deposited", amount="100.00")
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "httpx", "httpcore")


def _renderer(json_logs: bool) -> structlog.types.Processor:
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def setup_logging(log_level: str = "DEBUG", json_logs: bool = False) -> None:
    """Route structlog through the stdlib root logger.

    Args:
        log_level: Standard Python log level string (DEBUG, INFO, WARNING, etc.)
        json_logs: If True, render JSON (production). If False, colored console.
    """
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_logs),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))

    for noisy_logger in _NOISY_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def escrow_context(escrow_id: str, **extra: Any) -> AbstractContextManager[Any]:
    """Bind escrow_id (and any extra keys) to every log entry inside the block."""
    return structlog.contextvars.bound_contextvars(escrow_id=escrow_id, **extra)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger (module name recommended)."""
    return structlog.get_logger(name)
