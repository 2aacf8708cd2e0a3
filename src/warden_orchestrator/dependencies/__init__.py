"""Audit dependency model and resolver."""

from __future__ import annotations

from warden_orchestrator.dependencies.base import (
    AuditDependency,
    BaseDependency,
    ConfigOption,
    DependencyType,
)
from warden_orchestrator.dependencies.kinds import (
    ExtensionDependency,
    FileDependency,
    PluginDependency,
    PluginDirectory,
    SystemCommandDependency,
)
from warden_orchestrator.dependencies.resolver import (
    DependencyReportEntry,
    DependencyResolver,
    ResolutionOutcome,
    ResolutionReport,
)

__all__ = [
    "AuditDependency",
    "BaseDependency",
    "ConfigOption",
    "DependencyReportEntry",
    "DependencyResolver",
    "DependencyType",
    "ExtensionDependency",
    "FileDependency",
    "PluginDependency",
    "PluginDirectory",
    "ResolutionOutcome",
    "ResolutionReport",
    "SystemCommandDependency",
]
