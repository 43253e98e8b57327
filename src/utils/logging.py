"""Structured logging setup using structlog.

One processor chain (context vars, level, timestamps, stack info) feeds
either a coloured ConsoleRenderer for local work or a JSONRenderer for
production.  ``APP_ENV=production`` (or ``json_output=True``) selects JSON.

Standard-library ``logging`` is routed through the same formatter so httpx,
uvicorn and chromadb records come out in the same shape as ours.

Pipeline runs bind ``document_id`` with :func:`document_context` so every
event emitted while a document is processed carries it automatically.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _select_renderer(json_output: bool) -> structlog.types.Processor:
    app_env = os.environ.get("APP_ENV", "development")
    if json_output or app_env == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and bridge stdlib logging through it.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output regardless of ``APP_ENV``.

    Returns:
        A configured structlog BoundLogger.
    """
    shared = _shared_processors()
    renderer = _select_renderer(json_output)
    level = logging.getLevelName(log_level.upper())

    structlog.configure(
        processors=[*shared, renderer],
        # Drops events below the level before any processor runs.
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared,
            renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    # httpx logs every request at INFO; keep it to warnings.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a named structlog logger, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


@contextmanager
def document_context(document_id: str, **extra: str) -> Iterator[None]:
    """Bind ``document_id`` (and any *extra* keys) to every event in the block."""
    with structlog.contextvars.bound_contextvars(document_id=document_id, **extra):
        yield
