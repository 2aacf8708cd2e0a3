"""Logging setup shared by every component."""

from warden_orchestrator.observability.logging import (
    configure_logging,
    get_correlation_context,
    reset_logging,
    run_scope,
)

__all__ = [
    "configure_logging",
    "get_correlation_context",
    "reset_logging",
    "run_scope",
]
