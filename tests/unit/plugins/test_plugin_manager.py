"""Unit tests for plugin registration, enablement and ordering."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from warden_orchestrator.dependencies.resolver import DependencyResolver
from warden_orchestrator.errors import (
    CircularDependencyError,
    PluginDependencyError,
    PluginNotFoundError,
    PluginValidationError,
)
from warden_orchestrator.plugins.base import BASE_CONFIG_SCHEMA, BasePlugin, ConfigField
from warden_orchestrator.plugins.manager import PluginManager


class _Plugin(BasePlugin):
    def __init__(
        self,
        plugin_id: str,
        *,
        requires: tuple[str, ...] = (),
        handles: tuple[str, ...] = (),
        version: str = "1.0.0",
        min_host_version: str = "1.0.0",
        max_host_version: str | None = None,
        compatible: bool = True,
    ) -> None:
        super().__init__()
        self.plugin_id = plugin_id
        self.requires = requires
        self.handles = handles
        self.version = version
        self.min_host_version = min_host_version
        self.max_host_version = max_host_version
        self._compatible = compatible
        self.hooks: list[str] = []

    def is_compatible(self) -> bool:
        return self._compatible

    def on_enable(self) -> None:
        self.hooks.append("enable")

    def on_disable(self) -> None:
        self.hooks.append("disable")

    def cleanup(self) -> None:
        super().cleanup()
        self.hooks.append("cleanup")


class ScannerPlugin(BasePlugin):
    handles = ("scan",)

    def config_schema(self) -> Mapping[str, ConfigField]:
        return {
            **BASE_CONFIG_SCHEMA,
            "severity_floor": ConfigField("string", "low", "Lowest severity reported"),
        }

    def register_dependencies(self, resolver: DependencyResolver) -> None:
        self.require(resolver, resolver.create_extension_dependency("json"))


def _manager(**kwargs: Any) -> PluginManager:
    return PluginManager(host_version="2.0.0", **kwargs)


def test_register_merges_defaults_and_initializes() -> None:
    manager = _manager(plugin_settings={"scanner": {"timeout_seconds": 30}})
    plugin = ScannerPlugin()

    manager.register(plugin, {"severity_floor": "medium"})

    assert plugin.identifier == "scanner"
    assert plugin.is_initialized
    config = manager.get_config("scanner")
    assert config["timeout_seconds"] == 30
    assert config["severity_floor"] == "medium"
    assert config["priority"] == 100
    assert manager.is_enabled("scanner")


def test_duplicate_registration_is_a_logged_no_op(recording_logger: Any) -> None:
    manager = _manager(logger=recording_logger)
    first = _Plugin("core")
    manager.register(first)
    manager.register(_Plugin("core", version="9.9.9"))

    assert manager.get("core") is first
    assert recording_logger.levels("plugin_already_registered") == ["warning"]


def test_config_can_register_a_plugin_disabled() -> None:
    manager = _manager()
    manager.register(_Plugin("core"), {"enabled": False})

    assert manager.has("core")
    assert not manager.is_enabled("core")
    assert manager.enabled_only() == {}


@pytest.mark.parametrize(
    ("plugin", "fragment"),
    [
        (_Plugin("core", min_host_version="3.0.0"), "requires host version >= 3.0.0"),
        (_Plugin("core", max_host_version="1.9.0"), "supports host version <= 1.9.0"),
        (_Plugin("core", compatible=False), "incompatible"),
        (_Plugin("Not_Kebab"), "kebab-case"),
        (_Plugin("core", requires=("core",)), "cannot depend on itself"),
        (_Plugin("core", handles=("",)), "non-empty"),
    ],
)
def test_register_rejects_invalid_plugins(plugin: _Plugin, fragment: str) -> None:
    manager = _manager()

    with pytest.raises(PluginValidationError) as excinfo:
        manager.register(plugin)

    assert fragment in str(excinfo.value)
    assert not manager.has(plugin.identifier)


def test_register_rejects_config_outside_schema() -> None:
    manager = _manager()

    with pytest.raises(PluginValidationError):
        manager.register(_Plugin("core"), {"priority": 0})


def test_register_runs_dependency_registration_against_resolver() -> None:
    resolver = DependencyResolver()
    manager = _manager(resolver=resolver)
    plugin = ScannerPlugin()

    manager.register(plugin)

    assert "python-extension-json" in resolver
    assert plugin.required_dependencies() == ("python-extension-json",)


def test_enable_requires_registered_enabled_and_recent_dependencies() -> None:
    manager = _manager()
    manager.register(_Plugin("web", requires=("core>=1.2.0",)), {"enabled": False})

    with pytest.raises(PluginDependencyError) as excinfo:
        manager.enable("web")
    assert excinfo.value.unsatisfied == ("core",)

    manager.register(_Plugin("core", version="1.1.0"))
    with pytest.raises(PluginDependencyError):
        manager.enable("web")

    manager.unregister("core")
    manager.register(_Plugin("core", version="1.2.0"))
    manager.enable("web")
    assert manager.is_enabled("web")
    assert manager.get("web").hooks == ["enable"]  # type: ignore[union-attr]


def test_enable_unknown_plugin_raises_not_found() -> None:
    with pytest.raises(PluginNotFoundError):
        _manager().enable("ghost")


def test_resolve_dependencies_reports_transitive_requirements() -> None:
    manager = _manager()
    manager.register(_Plugin("app", requires=("web",)))
    manager.register(_Plugin("web", requires=("core",)))
    manager.register(_Plugin("core"), {"enabled": False})

    assert manager.resolve_dependencies("app") == {"web": True, "core": False}


def test_resolve_dependencies_names_full_cycle() -> None:
    manager = _manager()
    manager.register(_Plugin("a", requires=("b",)))
    manager.register(_Plugin("b", requires=("c",)))
    manager.register(_Plugin("c", requires=("a",)))

    with pytest.raises(CircularDependencyError) as excinfo:
        manager.resolve_dependencies("a")

    assert excinfo.value.cycle == ("a", "b", "c", "a")


def test_disable_is_refused_while_enabled_dependents_exist(recording_logger: Any) -> None:
    manager = _manager(logger=recording_logger)
    core = _Plugin("core")
    manager.register(core)
    manager.register(_Plugin("web", requires=("core",)))

    assert manager.disable("core") is False
    assert manager.is_enabled("core")
    assert recording_logger.levels("plugin_disable_refused") == ["warning"]

    assert manager.disable("web") is True
    assert manager.disable("core") is True
    assert core.hooks == ["disable"]


def test_unregister_calls_cleanup_and_frees_identifier() -> None:
    manager = _manager()
    plugin = _Plugin("core")
    manager.register(plugin)

    manager.unregister("core")

    assert plugin.hooks == ["cleanup"]
    assert not manager.has("core")
    manager.register(_Plugin("core"))
    assert manager.has("core")


def test_dependency_order_puts_requirements_first_and_keeps_registration_ties() -> None:
    manager = _manager()
    manager.register(_Plugin("reporting"))
    manager.register(_Plugin("web", requires=("core",)))
    manager.register(_Plugin("core"))
    manager.register(_Plugin("extras"))

    order = [plugin.identifier for plugin in manager.dependency_order()]

    assert order == ["reporting", "core", "web", "extras"]


def test_dependency_order_skips_disabled_plugins_and_is_cached() -> None:
    manager = _manager()
    manager.register(_Plugin("core"))
    manager.register(_Plugin("optional"), {"enabled": False})

    first = manager.dependency_order()
    assert [plugin.identifier for plugin in first] == ["core"]
    assert manager._order_cache is not None

    manager.register(_Plugin("late"))
    assert manager._order_cache is None
    assert [plugin.identifier for plugin in manager.dependency_order()] == ["core", "late"]


def test_dependency_order_cycle_raises_and_logs(recording_logger: Any) -> None:
    manager = _manager(logger=recording_logger)
    manager.register(_Plugin("a", requires=("b",)))
    manager.register(_Plugin("b", requires=("a",)))

    with pytest.raises(CircularDependencyError) as excinfo:
        manager.dependency_order()

    assert str(excinfo.value) == "Circular plugin dependency: a -> b -> a"
    assert recording_logger.levels("plugin_dependency_cycle") == ["error"]


def test_audit_classes_first_plugin_in_order_wins(recording_logger: Any) -> None:
    manager = _manager(logger=recording_logger)
    manager.register(_Plugin("web", requires=("core",), handles=("headers", "env")))
    manager.register(_Plugin("core", handles=("env",)))

    assert manager.audit_classes() == {"env": "core", "headers": "web"}
    [(level, fields)] = recording_logger.named("audit_handle_collision")
    assert level == "warning"
    assert fields == {"handle": "env", "kept": "core", "ignored": "web"}


def test_set_config_merges_and_reinitializes() -> None:
    manager = _manager()
    plugin = ScannerPlugin()
    manager.register(plugin)

    updated = manager.set_config("scanner", {"severity_floor": "high"})

    assert updated["severity_floor"] == "high"
    assert plugin.get_option("severity_floor") == "high"
    with pytest.raises(PluginValidationError):
        manager.set_config("scanner", {"timeout_seconds": "soon"})


def test_manager_binds_itself_as_plugin_directory() -> None:
    resolver = DependencyResolver()
    manager = _manager(resolver=resolver)
    manager.register(_Plugin("core", version="2.0.0"), {"enabled": False})
    dependency = resolver.create_plugin_dependency("core", minimum_version="1.5.0")
    resolver.add(dependency)

    assert resolver.is_satisfied("plugin-core") is False
    assert resolver.resolve_dependency("plugin-core") is True
    assert manager.is_enabled("core")
