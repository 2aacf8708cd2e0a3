"""End-to-end audit runs over the plugin registry, cache and executor."""

from __future__ import annotations

from warden_orchestrator.orchestration.runner import (
    AuditReport,
    AuditRunner,
    AuditRunRequest,
    AuditTaskFactory,
    AuditTaskRegistry,
    SkippedAudit,
    TaskRegistration,
    build_runner,
)

__all__ = [
    "AuditReport",
    "AuditRunRequest",
    "AuditRunner",
    "AuditTaskFactory",
    "AuditTaskRegistry",
    "SkippedAudit",
    "TaskRegistration",
    "build_runner",
]
