"""Audit execution: freshness cache and parallel executor."""

from __future__ import annotations

from warden_orchestrator.execution.cache import (
    AuditCache,
    CacheBackend,
    CacheEntry,
    InMemoryCacheBackend,
    SqliteCacheBackend,
)
from warden_orchestrator.execution.executor import (
    AuditOutcome,
    AuditStatus,
    AuditTask,
    ParallelAuditExecutor,
)

__all__ = [
    "AuditCache",
    "AuditOutcome",
    "AuditStatus",
    "AuditTask",
    "CacheBackend",
    "CacheEntry",
    "InMemoryCacheBackend",
    "ParallelAuditExecutor",
    "SqliteCacheBackend",
]
