"""Plugin contract and a convenience base class for audit plugins."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final, Literal, Protocol, runtime_checkable

import structlog

from warden_orchestrator.constants import (
    DEFAULT_PLUGIN_PRIORITY,
    DEFAULT_PLUGIN_TIMEOUT_SECONDS,
    HOST_VERSION,
)

if TYPE_CHECKING:
    from warden_orchestrator.dependencies.base import AuditDependency
    from warden_orchestrator.dependencies.resolver import DependencyResolver

FieldType = Literal["boolean", "integer", "number", "string"]

_KEBAB_BOUNDARY: Final = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_IDENTIFIER_PATTERN: Final = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


@dataclass(frozen=True, slots=True)
class ConfigField:
    """Schema entry for one plugin configuration key."""

    type: FieldType
    default: object
    description: str = ""
    minimum: float | None = None
    maximum: float | None = None

    def check(self, value: object) -> str | None:
        """Return a problem description, or ``None`` when ``value`` fits."""
        if self.type == "boolean":
            if not isinstance(value, bool):
                return f"expected boolean, got {type(value).__name__}"
            return None
        if self.type == "string":
            if not isinstance(value, str):
                return f"expected string, got {type(value).__name__}"
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return f"expected {self.type}, got {type(value).__name__}"
        if self.type == "integer" and not isinstance(value, int):
            return f"expected integer, got {type(value).__name__}"
        if not math.isfinite(float(value)):
            return "must be finite"
        if self.minimum is not None and value < self.minimum:
            return f"must be >= {self.minimum:g}"
        if self.maximum is not None and value > self.maximum:
            return f"must be <= {self.maximum:g}"
        return None


BASE_CONFIG_SCHEMA: Final[Mapping[str, ConfigField]] = {
    "enabled": ConfigField("boolean", True, "Whether this plugin is enabled"),
    "priority": ConfigField(
        "integer",
        DEFAULT_PLUGIN_PRIORITY,
        "Start order of the plugin's audits, highest first",
        minimum=1,
        maximum=1000,
    ),
    "timeout_seconds": ConfigField(
        "number",
        DEFAULT_PLUGIN_TIMEOUT_SECONDS,
        "Timeout in seconds for each audit the plugin contributes",
        minimum=1,
        maximum=3600,
    ),
}


@runtime_checkable
class AuditPlugin(Protocol):
    """Contract the plugin manager relies on."""

    @property
    def identifier(self) -> str: ...

    @property
    def version(self) -> str: ...

    @property
    def min_host_version(self) -> str: ...

    @property
    def max_host_version(self) -> str | None: ...

    def depends_on(self) -> tuple[str, ...]: ...

    def audit_handles(self) -> tuple[str, ...]: ...

    def is_compatible(self) -> bool: ...

    def config_schema(self) -> Mapping[str, ConfigField]: ...

    def default_config(self) -> Mapping[str, object]: ...

    def initialize(self, config: Mapping[str, object]) -> None: ...

    def cleanup(self) -> None: ...


class BasePlugin:
    """Defaults for plugins; subclasses usually set a few class attributes.

    ``identifier`` defaults to the kebab-cased class name without a trailing
    ``Plugin`` (``DockerAuditPlugin`` becomes ``docker-audit``). Entries in
    ``requires`` are plugin identifiers, optionally with a minimum version:
    ``"core"`` or ``"core>=1.2.0"``.
    """

    plugin_id: str = ""
    name: str = ""
    description: str = ""
    version: str = "1.0.0"
    author: str = "Unknown"
    min_host_version: str = HOST_VERSION
    max_host_version: str | None = None
    requires: tuple[str, ...] = ()
    handles: tuple[str, ...] = ()

    def __init__(self, *, logger: Any | None = None) -> None:
        self._config: dict[str, object] = {}
        self._initialized = False
        self._dependency_ids: list[str] = []
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def identifier(self) -> str:
        if self.plugin_id:
            return self.plugin_id
        return kebab_identifier(type(self).__name__)

    @property
    def config(self) -> Mapping[str, object]:
        return dict(self._config)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def depends_on(self) -> tuple[str, ...]:
        return tuple(self.requires)

    def audit_handles(self) -> tuple[str, ...]:
        return tuple(self.handles)

    def is_compatible(self) -> bool:
        return True

    def config_schema(self) -> Mapping[str, ConfigField]:
        return dict(BASE_CONFIG_SCHEMA)

    def default_config(self) -> Mapping[str, object]:
        return {key: field.default for key, field in self.config_schema().items()}

    def initialize(self, config: Mapping[str, object]) -> None:
        self._config = {**self.default_config(), **config}
        self._initialized = True
        self._logger.debug("plugin_initialized", plugin=self.identifier)

    def cleanup(self) -> None:
        self._initialized = False
        self._logger.debug("plugin_cleanup", plugin=self.identifier)

    def on_enable(self) -> None:
        """Hook called after the manager enables the plugin."""

    def on_disable(self) -> None:
        """Hook called after the manager disables the plugin."""

    def register_dependencies(self, resolver: DependencyResolver) -> None:
        """Create and register this plugin's dependencies; see ``require``."""

    def required_dependencies(self) -> tuple[str, ...]:
        """Identifiers of dependencies registered through ``require``."""
        return tuple(self._dependency_ids)

    def require(self, resolver: DependencyResolver, dependency: AuditDependency) -> None:
        resolver.add(dependency)
        if dependency.identifier not in self._dependency_ids:
            self._dependency_ids.append(dependency.identifier)

    def get_option(self, key: str, default: object = None) -> object:
        return self._config.get(key, default)


def kebab_identifier(class_name: str) -> str:
    stem = class_name[: -len("Plugin")] if class_name.endswith("Plugin") else class_name
    return _KEBAB_BOUNDARY.sub("-", stem or class_name).lower()


def is_valid_identifier(identifier: str) -> bool:
    return bool(_IDENTIFIER_PATTERN.fullmatch(identifier))


__all__ = [
    "BASE_CONFIG_SCHEMA",
    "AuditPlugin",
    "BasePlugin",
    "ConfigField",
    "is_valid_identifier",
    "kebab_identifier",
]
