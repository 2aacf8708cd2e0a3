"""Dependency contract shared by the resolver and every built-in dependency kind."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Protocol, runtime_checkable

from warden_orchestrator.constants import DEFAULT_DEPENDENCY_PRIORITY


class DependencyType(StrEnum):
    EXTENSION = "extension"
    SYSTEM_COMMAND = "system-command"
    FILE = "file"
    PLUGIN = "plugin"


@dataclass(frozen=True, slots=True)
class ConfigOption:
    """Describes one configuration knob a dependency exposes."""

    type: str
    description: str
    default: object = None

    def to_dict(self) -> dict[str, object]:
        return {"type": self.type, "description": self.description, "default": self.default}


@runtime_checkable
class AuditDependency(Protocol):
    """Named precondition an audit task needs before it can run correctly."""

    @property
    def identifier(self) -> str: ...

    @property
    def type(self) -> DependencyType: ...

    @property
    def priority(self) -> int: ...

    @property
    def config(self) -> Mapping[str, object]: ...

    def is_satisfied(self) -> bool: ...

    def unsatisfied_reason(self) -> str | None: ...

    def resolve(self) -> bool: ...

    def config_options(self) -> Mapping[str, ConfigOption]: ...


class BaseDependency:
    """Common state for dependency kinds.

    Subclasses implement ``is_satisfied`` and ``_describe_failure``; ``resolve``
    defaults to "cannot be fixed automatically".
    """

    def __init__(
        self,
        identifier: str,
        dependency_type: DependencyType,
        *,
        priority: int = DEFAULT_DEPENDENCY_PRIORITY,
        config: Mapping[str, object] | None = None,
    ) -> None:
        if not isinstance(identifier, str) or not identifier.strip():
            raise ValueError("dependency identifier must be a non-empty string")
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise TypeError("dependency priority must be an integer")
        self._identifier = identifier.strip()
        self._type = DependencyType(dependency_type)
        self._priority = priority
        self._config = MappingProxyType(dict(config or {}))

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def type(self) -> DependencyType:
        return self._type

    @property
    def priority(self) -> int:
        return self._priority

    @property
    def config(self) -> Mapping[str, object]:
        return self._config

    def is_satisfied(self) -> bool:
        raise NotImplementedError

    def unsatisfied_reason(self) -> str | None:
        if self.is_satisfied():
            return None
        return self._describe_failure()

    def resolve(self) -> bool:
        return False

    def config_options(self) -> Mapping[str, ConfigOption]:
        return {}

    def _describe_failure(self) -> str:
        return f"dependency {self._identifier!r} is not satisfied"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(identifier={self._identifier!r}, "
            f"type={self._type.value!r}, priority={self._priority})"
        )


__all__ = [
    "AuditDependency",
    "BaseDependency",
    "ConfigOption",
    "DependencyType",
]
