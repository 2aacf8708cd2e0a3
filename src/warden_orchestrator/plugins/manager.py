"""
Plugin registry with dependency-ordered activation.

State per plugin: registered-enabled or registered-disabled; unregistering
frees the identifier. Dependencies between plugins are validated lazily, so a
plugin may be registered before the plugins it requires.

Ordering
- ``dependency_order`` is a topological sort of enabled, validated plugins;
  requirements come first and ties keep registration order.
- Any cycle aborts ordering with ``CircularDependencyError`` naming the cycle.
- The computed order is cached until the next mutation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from warden_orchestrator.constants import HOST_VERSION
from warden_orchestrator.dependencies.resolver import DependencyResolver
from warden_orchestrator.errors import (
    CircularDependencyError,
    PluginDependencyError,
    PluginNotFoundError,
    PluginValidationError,
)
from warden_orchestrator.plugins.base import (
    BASE_CONFIG_SCHEMA,
    AuditPlugin,
    ConfigField,
    is_valid_identifier,
)
from warden_orchestrator.plugins.graph import PluginGraph
from warden_orchestrator.utils.versions import (
    parse_requirement,
    version_at_least,
    version_at_most,
)


@dataclass(slots=True)
class _Registration:
    plugin: AuditPlugin
    enabled: bool
    config: dict[str, object]


class PluginManager:
    """Owns registered plugins and answers enablement and ordering queries."""

    def __init__(
        self,
        *,
        host_version: str = HOST_VERSION,
        resolver: DependencyResolver | None = None,
        plugin_settings: Mapping[str, Mapping[str, object]] | None = None,
        logger: Any | None = None,
    ) -> None:
        self._host_version = host_version
        self._resolver = resolver
        self._plugin_settings = {key: dict(value) for key, value in (plugin_settings or {}).items()}
        self._registrations: dict[str, _Registration] = {}
        self._order_cache: tuple[str, ...] | None = None
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        if resolver is not None:
            resolver.bind_plugin_directory(self)

    @property
    def host_version(self) -> str:
        return self._host_version

    # Registration -------------------------------------------------------------

    def register(self, plugin: AuditPlugin, config: Mapping[str, object] | None = None) -> None:
        identifier = plugin.identifier
        if identifier in self._registrations:
            self._logger.warning("plugin_already_registered", plugin=identifier)
            return

        problem = self._validation_problem(plugin)
        if problem is not None:
            self._logger.error("plugin_validation_failed", plugin=identifier, reason=problem)
            raise PluginValidationError(identifier, problem)

        merged = self._merge_config(plugin, self._plugin_settings.get(identifier, {}), config or {})
        plugin.initialize(merged)

        register_dependencies = getattr(plugin, "register_dependencies", None)
        if self._resolver is not None and callable(register_dependencies):
            register_dependencies(self._resolver)

        enabled = merged.get("enabled", True) is not False
        self._registrations[identifier] = _Registration(
            plugin=plugin, enabled=enabled, config=merged
        )
        self._invalidate()
        self._logger.info(
            "plugin_registered",
            plugin=identifier,
            version=plugin.version,
            enabled=enabled,
        )

    def unregister(self, identifier: str) -> None:
        registration = self._require(identifier)
        try:
            registration.plugin.cleanup()
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "plugin_cleanup_failed",
                plugin=identifier,
                error=f"{type(exc).__name__}: {exc}",
            )
        del self._registrations[identifier]
        self._invalidate()
        self._logger.info("plugin_unregistered", plugin=identifier)

    # Enablement ---------------------------------------------------------------

    def enable(self, identifier: str) -> None:
        registration = self._require(identifier)
        statuses = self.resolve_dependencies(identifier)
        unsatisfied = [name for name, ok in statuses.items() if not ok]
        if unsatisfied:
            self._logger.warning(
                "plugin_enable_blocked", plugin=identifier, unsatisfied=unsatisfied
            )
            raise PluginDependencyError(identifier, unsatisfied)
        if registration.enabled:
            return
        registration.enabled = True
        self._invalidate()
        _call_hook(registration.plugin, "on_enable")
        self._logger.info("plugin_enabled", plugin=identifier)

    def disable(self, identifier: str) -> bool:
        """Disable a plugin; refused while an enabled plugin still requires it."""
        registration = self._require(identifier)
        dependents = [
            other
            for other, candidate in self._registrations.items()
            if other != identifier
            and candidate.enabled
            and identifier in self._required_ids(candidate.plugin)
        ]
        if dependents:
            self._logger.warning("plugin_disable_refused", plugin=identifier, dependents=dependents)
            return False
        if not registration.enabled:
            return True
        registration.enabled = False
        self._invalidate()
        _call_hook(registration.plugin, "on_disable")
        self._logger.info("plugin_disabled", plugin=identifier)
        return True

    def is_enabled(self, identifier: str) -> bool:
        registration = self._registrations.get(identifier)
        return registration is not None and registration.enabled

    # Lookup -------------------------------------------------------------------

    def get(self, identifier: str) -> AuditPlugin | None:
        registration = self._registrations.get(identifier)
        return registration.plugin if registration is not None else None

    def has(self, identifier: str) -> bool:
        return identifier in self._registrations

    def all(self) -> dict[str, AuditPlugin]:
        return {key: item.plugin for key, item in self._registrations.items()}

    def enabled_only(self) -> dict[str, AuditPlugin]:
        return {key: item.plugin for key, item in self._registrations.items() if item.enabled}

    # Validation ---------------------------------------------------------------

    def validate(self, plugin: AuditPlugin) -> bool:
        problem = self._validation_problem(plugin)
        if problem is not None:
            self._logger.warning(
                "plugin_incompatible", plugin=_safe_identifier(plugin), reason=problem
            )
            return False
        return True

    def _validation_problem(self, plugin: AuditPlugin) -> str | None:
        identifier = plugin.identifier
        if not isinstance(identifier, str) or not is_valid_identifier(identifier):
            return f"identifier {identifier!r} must be kebab-case"
        if not version_at_least(self._host_version, plugin.min_host_version):
            return (
                f"requires host version >= {plugin.min_host_version} "
                f"(running {self._host_version})"
            )
        maximum = plugin.max_host_version
        if maximum is not None and not version_at_most(self._host_version, maximum):
            return f"supports host version <= {maximum} (running {self._host_version})"
        try:
            compatible = plugin.is_compatible()
        except Exception as exc:  # noqa: BLE001
            return f"compatibility check raised {type(exc).__name__}: {exc}"
        if not compatible:
            return "plugin reports it is incompatible with this environment"
        for handle in plugin.audit_handles():
            if not isinstance(handle, str) or not handle.strip():
                return "audit handles must be non-empty strings"
        for requirement in plugin.depends_on():
            try:
                required_id, _ = parse_requirement(requirement)
            except ValueError as exc:
                return str(exc)
            if required_id == identifier:
                return "plugin cannot depend on itself"
        return None

    # Dependencies -------------------------------------------------------------

    def resolve_dependencies(self, identifier: str) -> dict[str, bool]:
        """Report each transitive requirement as satisfied or not.

        A requirement is satisfied when the plugin is registered, enabled and
        at or above the requested minimum version. Raises
        ``CircularDependencyError`` when the requirement chain loops.
        """
        self._require(identifier)
        statuses: dict[str, bool] = {}
        self._walk(identifier, path=[], visiting=set(), done=set(), statuses=statuses)
        return statuses

    def _walk(
        self,
        identifier: str,
        *,
        path: list[str],
        visiting: set[str],
        done: set[str],
        statuses: dict[str, bool],
    ) -> None:
        path.append(identifier)
        visiting.add(identifier)
        registration = self._registrations[identifier]

        for requirement in registration.plugin.depends_on():
            required_id, minimum_version = parse_requirement(requirement)
            if required_id in visiting:
                cycle = [*path[path.index(required_id) :], required_id]
                raise CircularDependencyError(cycle)

            required = self._registrations.get(required_id)
            satisfied = (
                required is not None
                and required.enabled
                and (
                    minimum_version is None
                    or version_at_least(required.plugin.version, minimum_version)
                )
            )
            statuses[required_id] = statuses.get(required_id, True) and satisfied

            if required is not None and required_id not in done:
                self._walk(
                    required_id, path=path, visiting=visiting, done=done, statuses=statuses
                )

        path.pop()
        visiting.discard(identifier)
        done.add(identifier)

    def dependency_order(self) -> list[AuditPlugin]:
        if self._order_cache is None:
            self._order_cache = self._compute_order()
        return [self._registrations[identifier].plugin for identifier in self._order_cache]

    def _compute_order(self) -> tuple[str, ...]:
        eligible = [
            identifier
            for identifier, registration in self._registrations.items()
            if registration.enabled and self.validate(registration.plugin)
        ]
        graph = PluginGraph(eligible)
        included = set(eligible)
        for identifier in eligible:
            for required_id in self._required_ids(self._registrations[identifier].plugin):
                if required_id in included:
                    graph.add_edge(identifier, required_id)
        try:
            return graph.topological_order()
        except CircularDependencyError as exc:
            self._logger.error("plugin_dependency_cycle", cycle=list(exc.cycle))
            raise

    def audit_classes(self) -> dict[str, str]:
        """Map each audit handle to the first plugin, in dependency order, that offers it."""
        handles: dict[str, str] = {}
        for plugin in self.dependency_order():
            for handle in plugin.audit_handles():
                owner = handles.get(handle)
                if owner is None:
                    handles[handle] = plugin.identifier
                elif owner != plugin.identifier:
                    self._logger.warning(
                        "audit_handle_collision",
                        handle=handle,
                        kept=owner,
                        ignored=plugin.identifier,
                    )
        return handles

    # Configuration ------------------------------------------------------------

    def get_config(self, identifier: str) -> dict[str, object]:
        return dict(self._require(identifier).config)

    def set_config(self, identifier: str, values: Mapping[str, object]) -> dict[str, object]:
        registration = self._require(identifier)
        merged = self._merge_config(registration.plugin, registration.config, values)
        registration.plugin.initialize(merged)
        registration.config = merged
        self._logger.info("plugin_config_updated", plugin=identifier, keys=sorted(values))
        return dict(merged)

    def _merge_config(
        self,
        plugin: AuditPlugin,
        base: Mapping[str, object],
        overrides: Mapping[str, object],
    ) -> dict[str, object]:
        schema: dict[str, ConfigField] = {**BASE_CONFIG_SCHEMA, **plugin.config_schema()}
        merged: dict[str, object] = {key: field.default for key, field in schema.items()}
        merged.update(plugin.default_config())
        merged.update(base)
        merged.update(overrides)

        problems = []
        for key in sorted(merged):
            field = schema.get(key)
            if field is None:
                continue
            message = field.check(merged[key])
            if message is not None:
                problems.append(f"{key}: {message}")
        if problems:
            raise PluginValidationError(plugin.identifier, "; ".join(problems))
        return merged

    # Internals ----------------------------------------------------------------

    def _require(self, identifier: str) -> _Registration:
        registration = self._registrations.get(identifier)
        if registration is None:
            raise PluginNotFoundError(identifier)
        return registration

    def _required_ids(self, plugin: AuditPlugin) -> tuple[str, ...]:
        return tuple(parse_requirement(item)[0] for item in plugin.depends_on())

    def _invalidate(self) -> None:
        self._order_cache = None


def _call_hook(plugin: AuditPlugin, name: str) -> None:
    hook = getattr(plugin, name, None)
    if callable(hook):
        hook()


def _safe_identifier(plugin: AuditPlugin) -> str:
    identifier = getattr(plugin, "identifier", None)
    return identifier if isinstance(identifier, str) else type(plugin).__name__


__all__ = ["PluginManager"]
