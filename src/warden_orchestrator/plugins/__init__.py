"""Plugin contract, dependency graph, and registry."""

from __future__ import annotations

from warden_orchestrator.plugins.base import (
    BASE_CONFIG_SCHEMA,
    AuditPlugin,
    BasePlugin,
    ConfigField,
    kebab_identifier,
)
from warden_orchestrator.plugins.graph import PluginGraph
from warden_orchestrator.plugins.manager import PluginManager

__all__ = [
    "BASE_CONFIG_SCHEMA",
    "AuditPlugin",
    "BasePlugin",
    "ConfigField",
    "PluginGraph",
    "PluginManager",
    "kebab_identifier",
]
