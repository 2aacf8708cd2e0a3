"""
structlog configuration and run-scoped correlation fields.

Components log through ``structlog.get_logger(__name__)`` with an event name
and keyword fields. ``configure_logging`` decides how those events are
rendered; ``run_scope`` binds fields such as ``run_id`` onto every event
emitted inside the block, including events from worker threads started with
``asyncio.to_thread`` (which copies the current context).
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO, Any

import structlog

from warden_orchestrator.config.settings import ObservabilitySettings

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def configure_logging(
    settings: ObservabilitySettings | None = None,
    *,
    stream: IO[str] | None = None,
) -> None:
    """Install the processor chain for the configured level and format."""
    level_name = settings.log_level if settings is not None else "INFO"
    log_format = settings.log_format if settings is not None else "json"
    if level_name not in _LEVELS:
        raise ValueError(f"unsupported log level: {level_name!r}")

    renderer: Any
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    elif log_format == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        raise ValueError(f"unsupported log format: {log_format!r}")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_LEVELS[level_name]),
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=False,
    )


def reset_logging() -> None:
    """Restore structlog defaults and drop any bound correlation fields."""
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@contextmanager
def run_scope(**fields: object) -> Iterator[None]:
    """Bind ``fields`` to every log event emitted inside the block."""
    bound = {key: value for key, value in fields.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def get_correlation_context() -> dict[str, Any]:
    return dict(structlog.contextvars.get_contextvars())


__all__ = [
    "configure_logging",
    "get_correlation_context",
    "reset_logging",
    "run_scope",
]
