"""
Dependency resolver.

Owns the registered dependencies, memoizes satisfaction checks, attempts
scripted remediation in priority order, and produces diagnostic reports.

Failure policy
- Exceptions raised by dependency code never leave the resolver; they are
  logged and treated as "not satisfied" or "not resolved".
- The memo is cleared on every mutation and after every resolution attempt.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from warden_orchestrator.constants import DEFAULT_DEPENDENCY_PRIORITY
from warden_orchestrator.dependencies.base import AuditDependency, DependencyType
from warden_orchestrator.dependencies.kinds import (
    ExtensionDependency,
    FileDependency,
    PluginDependency,
    PluginDirectory,
    SystemCommandDependency,
)


@dataclass(frozen=True, slots=True)
class ResolutionOutcome:
    """Result of one ``resolve_dependency`` call."""

    identifier: str
    success: bool
    attempted: bool
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class DependencyReportEntry:
    type: DependencyType
    priority: int
    satisfied: bool
    resolvable: bool
    reason: str | None
    config_options: Mapping[str, Mapping[str, object]]

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type.value,
            "priority": self.priority,
            "satisfied": self.satisfied,
            "resolvable": self.resolvable,
            "reason": self.reason,
            "config_options": {key: dict(value) for key, value in self.config_options.items()},
        }


@dataclass(frozen=True, slots=True)
class ResolutionReport:
    total: int
    satisfied: int
    unsatisfied: int
    resolvable: int
    unresolvable: int
    details: Mapping[str, DependencyReportEntry]

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "satisfied": self.satisfied,
            "unsatisfied": self.unsatisfied,
            "resolvable": self.resolvable,
            "unresolvable": self.unresolvable,
            "details": {key: entry.to_dict() for key, entry in self.details.items()},
        }


class DependencyResolver:
    """Registry of audit dependencies with memoized satisfaction checks."""

    def __init__(
        self,
        *,
        base_path: str | Path | None = None,
        plugin_directory: PluginDirectory | None = None,
        logger: Any | None = None,
    ) -> None:
        self._dependencies: dict[str, AuditDependency] = {}
        self._memo: dict[str, bool] = {}
        self._lock = threading.RLock()
        self._base_path = Path(base_path) if base_path is not None else None
        self._plugin_directory = plugin_directory
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def bind_plugin_directory(self, directory: PluginDirectory) -> None:
        self._plugin_directory = directory

    # Collection ---------------------------------------------------------------

    def add(self, dependency: AuditDependency) -> None:
        """Register ``dependency``; re-adding an identifier replaces it in place."""
        with self._lock:
            self._dependencies[dependency.identifier] = dependency
            self._memo.clear()

    def remove(self, identifier: str) -> None:
        with self._lock:
            self._dependencies.pop(identifier, None)
            self._memo.clear()

    def get(self, identifier: str) -> AuditDependency | None:
        with self._lock:
            return self._dependencies.get(identifier)

    def all(self) -> list[AuditDependency]:
        """All dependencies in registration order."""
        with self._lock:
            return list(self._dependencies.values())

    def by_type(self, dependency_type: DependencyType) -> list[AuditDependency]:
        return [item for item in self.all() if item.type == dependency_type]

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._dependencies

    def __len__(self) -> int:
        with self._lock:
            return len(self._dependencies)

    # Queries ------------------------------------------------------------------

    def is_satisfied(self, identifier: str) -> bool:
        with self._lock:
            dependency = self._dependencies.get(identifier)
            if dependency is None:
                return False
            cached = self._memo.get(identifier)
            if cached is not None:
                return cached
            satisfied = self._check(dependency)
            self._memo[identifier] = satisfied
            return satisfied

    def unsatisfied_dependencies(self) -> list[AuditDependency]:
        return [item for item in self.all() if not self.is_satisfied(item.identifier)]

    def unsatisfied_by_type(self) -> dict[DependencyType, list[AuditDependency]]:
        grouped: dict[DependencyType, list[AuditDependency]] = {}
        for dependency in self.unsatisfied_dependencies():
            grouped.setdefault(dependency.type, []).append(dependency)
        return grouped

    # Resolution ---------------------------------------------------------------

    def resolve_all(self) -> dict[str, bool]:
        """Attempt every dependency, highest priority first.

        ``sorted`` is stable, so equal priorities keep registration order.
        """
        ordered = sorted(self.all(), key=lambda item: item.priority, reverse=True)
        return {item.identifier: self.resolve_dependency(item.identifier) for item in ordered}

    def resolve_dependency(self, identifier: str) -> bool:
        return self.attempt(identifier).success

    def attempt(self, identifier: str) -> ResolutionOutcome:
        """Resolve one dependency and report whether remediation was attempted."""
        with self._lock:
            dependency = self._dependencies.get(identifier)
            if dependency is None:
                self._logger.warning("dependency_unknown", dependency=identifier)
                return ResolutionOutcome(
                    identifier=identifier,
                    success=False,
                    attempted=False,
                    reason=f"dependency {identifier!r} is not registered",
                )

            if self.is_satisfied(identifier):
                return ResolutionOutcome(identifier=identifier, success=True, attempted=False)

            try:
                resolved = bool(dependency.resolve())
            except Exception as exc:  # noqa: BLE001
                self._logger.error(
                    "dependency_resolution_error",
                    dependency=identifier,
                    error=f"{type(exc).__name__}: {exc}",
                )
                return ResolutionOutcome(
                    identifier=identifier,
                    success=False,
                    attempted=True,
                    reason=f"{type(exc).__name__}: {exc}",
                )
            finally:
                self._memo.clear()

            if resolved:
                self._logger.info(
                    "dependency_resolved",
                    dependency=identifier,
                    dependency_type=dependency.type.value,
                )
                return ResolutionOutcome(identifier=identifier, success=True, attempted=True)

            reason = self._reason(dependency)
            self._logger.warning(
                "dependency_unresolved",
                dependency=identifier,
                dependency_type=dependency.type.value,
                reason=reason,
            )
            return ResolutionOutcome(
                identifier=identifier, success=False, attempted=True, reason=reason
            )

    def resolution_report(self) -> ResolutionReport:
        """Snapshot every dependency's state.

        Unsatisfied dependencies are probed through ``resolve()`` to learn
        whether remediation works. Satisfied ones are deliberately not
        probed: ``resolve()`` may install, create or enable things, so calling
        it on every dependency would make a read-only report mutate the
        environment. They are reported resolvable without being touched.
        """
        details: dict[str, DependencyReportEntry] = {}
        satisfied_count = 0
        resolvable_count = 0
        unresolvable_count = 0

        with self._lock:
            for dependency in self.all():
                identifier = dependency.identifier
                satisfied = self.is_satisfied(identifier)
                reason: str | None = None
                if satisfied:
                    satisfied_count += 1
                    resolvable = True
                else:
                    reason = self._reason(dependency)
                    resolvable = self._probe(dependency)
                    if resolvable:
                        resolvable_count += 1
                    else:
                        unresolvable_count += 1

                details[identifier] = DependencyReportEntry(
                    type=dependency.type,
                    priority=dependency.priority,
                    satisfied=satisfied,
                    resolvable=resolvable,
                    reason=reason,
                    config_options=self._config_options(dependency),
                )

        return ResolutionReport(
            total=len(details),
            satisfied=satisfied_count,
            unsatisfied=len(details) - satisfied_count,
            resolvable=resolvable_count,
            unresolvable=unresolvable_count,
            details=details,
        )

    # Factories ----------------------------------------------------------------

    def create_extension_dependency(
        self,
        module: str,
        *,
        priority: int = DEFAULT_DEPENDENCY_PRIORITY,
        install_hint: str | None = None,
    ) -> ExtensionDependency:
        return ExtensionDependency(module, priority=priority, install_hint=install_hint)

    def create_system_command_dependency(
        self,
        command: str,
        *,
        install_hint: str | None = None,
        priority: int = DEFAULT_DEPENDENCY_PRIORITY,
    ) -> SystemCommandDependency:
        return SystemCommandDependency(command, priority=priority, install_hint=install_hint)

    def create_file_dependency(
        self,
        path: str,
        *,
        must_exist: bool = True,
        is_directory: bool = False,
        priority: int = DEFAULT_DEPENDENCY_PRIORITY,
    ) -> FileDependency:
        return FileDependency(
            path,
            must_exist=must_exist,
            is_directory=is_directory,
            base_path=self._base_path,
            priority=priority,
        )

    def create_plugin_dependency(
        self,
        required_plugin: str,
        *,
        minimum_version: str = "1.0.0",
        priority: int = DEFAULT_DEPENDENCY_PRIORITY,
    ) -> PluginDependency:
        if self._plugin_directory is None:
            raise RuntimeError("no plugin directory is bound to this resolver")
        return PluginDependency(
            required_plugin,
            self._plugin_directory,
            minimum_version=minimum_version,
            priority=priority,
        )

    # Internals ----------------------------------------------------------------

    def _check(self, dependency: AuditDependency) -> bool:
        try:
            return bool(dependency.is_satisfied())
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "dependency_check_error",
                dependency=dependency.identifier,
                error=f"{type(exc).__name__}: {exc}",
            )
            return False

    def _probe(self, dependency: AuditDependency) -> bool:
        try:
            return bool(dependency.resolve())
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "dependency_probe_error",
                dependency=dependency.identifier,
                error=f"{type(exc).__name__}: {exc}",
            )
            return False
        finally:
            self._memo.clear()

    def _reason(self, dependency: AuditDependency) -> str:
        try:
            reason = dependency.unsatisfied_reason()
        except Exception as exc:  # noqa: BLE001
            return f"unable to determine reason: {type(exc).__name__}: {exc}"
        return reason or f"dependency {dependency.identifier!r} is not satisfied"

    def _config_options(self, dependency: AuditDependency) -> dict[str, Mapping[str, object]]:
        try:
            options = dependency.config_options()
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "dependency_config_options_error",
                dependency=dependency.identifier,
                error=f"{type(exc).__name__}: {exc}",
            )
            return {}
        rendered: dict[str, Mapping[str, object]] = {}
        for key, option in options.items():
            to_dict = getattr(option, "to_dict", None)
            if callable(to_dict):
                rendered[key] = to_dict()
            elif isinstance(option, Mapping):
                rendered[key] = dict(option)
            else:
                rendered[key] = {"value": option}
        return rendered


__all__ = [
    "DependencyReportEntry",
    "DependencyResolver",
    "ResolutionOutcome",
    "ResolutionReport",
]
