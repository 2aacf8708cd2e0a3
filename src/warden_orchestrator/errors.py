"""Typed error taxonomy for the orchestration core."""

from __future__ import annotations

from collections.abc import Iterable, Sequence


class WardenError(Exception):
    """Base class for all orchestration errors."""


class PluginError(WardenError):
    """Base class for plugin registry failures."""


class PluginNotFoundError(PluginError, KeyError):
    """Raised when an operation references an unregistered plugin."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"plugin {identifier!r} is not registered")

    def __str__(self) -> str:
        return str(self.args[0])


class PluginValidationError(PluginError, ValueError):
    """Raised when a plugin fails host compatibility validation."""

    def __init__(self, identifier: str, reason: str) -> None:
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"plugin {identifier!r} failed validation: {reason}")


class PluginDependencyError(PluginError):
    """Raised when a plugin cannot be enabled because its dependencies are unmet."""

    def __init__(self, identifier: str, unsatisfied: Iterable[str]) -> None:
        self.identifier = identifier
        self.unsatisfied = tuple(unsatisfied)
        rendered = ", ".join(self.unsatisfied)
        super().__init__(f"plugin {identifier!r} has unsatisfied dependencies: {rendered}")


class CircularDependencyError(PluginError, ValueError):
    """Raised when plugin dependencies form a cycle.

    ``cycle`` is a closed path such as ``("a", "b", "a")``.
    """

    cycle: tuple[str, ...]

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        if self.cycle:
            message = "Circular plugin dependency: " + " -> ".join(self.cycle)
        else:
            message = "Circular plugin dependency detected"
        super().__init__(message)


class AuditError(WardenError):
    """Raised by or on behalf of an audit task."""

    def __init__(self, audit_name: str, message: str) -> None:
        self.audit_name = audit_name
        super().__init__(f"audit {audit_name!r} failed: {message}")


class AuditTimeoutError(AuditError):
    """An audit exceeded its time bound."""

    def __init__(self, audit_name: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(audit_name, f"timed out after {timeout_seconds:g} seconds")


class CacheBackendError(WardenError):
    """Raised when a cache backend is unreadable or corrupted."""


__all__ = [
    "AuditError",
    "AuditTimeoutError",
    "CacheBackendError",
    "CircularDependencyError",
    "PluginDependencyError",
    "PluginError",
    "PluginNotFoundError",
    "PluginValidationError",
    "WardenError",
]
