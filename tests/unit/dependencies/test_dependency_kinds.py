"""Unit tests for the built-in dependency kinds."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from warden_orchestrator.dependencies.base import BaseDependency, DependencyType
from warden_orchestrator.dependencies.kinds import (
    ExtensionDependency,
    FileDependency,
    PluginDependency,
    SystemCommandDependency,
    file_identifier,
)
from warden_orchestrator.errors import PluginDependencyError


@dataclass
class _FakePlugin:
    version: str


@dataclass
class _FakeDirectory:
    plugins: dict[str, _FakePlugin] = field(default_factory=dict)
    enabled: set[str] = field(default_factory=set)
    refuse: bool = False

    def get(self, identifier: str) -> _FakePlugin | None:
        return self.plugins.get(identifier)

    def is_enabled(self, identifier: str) -> bool:
        return identifier in self.enabled

    def enable(self, identifier: str) -> None:
        if self.refuse:
            raise PluginDependencyError(identifier, ["something-else"])
        self.enabled.add(identifier)


def test_base_dependency_validates_identifier_and_priority() -> None:
    with pytest.raises(ValueError):
        BaseDependency("  ", DependencyType.FILE)
    with pytest.raises(TypeError):
        BaseDependency("x", DependencyType.FILE, priority=True)


def test_extension_dependency_checks_importability() -> None:
    present = ExtensionDependency("json")
    missing = ExtensionDependency("warden_no_such_module_xyz", install_hint="pip install xyz")

    assert present.identifier == "python-extension-json"
    assert present.type is DependencyType.EXTENSION
    assert present.is_satisfied()
    assert present.unsatisfied_reason() is None
    assert not missing.is_satisfied()
    assert missing.resolve() is False
    assert "pip install xyz" in (missing.unsatisfied_reason() or "")


def test_system_command_dependency_uses_search_path(tmp_path: Path) -> None:
    executable = tmp_path / "fake-scanner"
    executable.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    executable.chmod(0o755)

    found = SystemCommandDependency("fake-scanner", search_path=str(tmp_path))
    absent = SystemCommandDependency(
        "fake-scanner", search_path=str(tmp_path / "empty"), install_hint="Install it"
    )

    assert found.identifier == "command-fake-scanner"
    assert found.is_satisfied()
    assert not absent.is_satisfied()
    assert absent.unsatisfied_reason() == (
        "System command 'fake-scanner' was not found on PATH. Install it"
    )


def test_file_identifier_replaces_separators() -> None:
    assert file_identifier("/storage/logs/") == "file-storage-logs"
    assert file_identifier("config/app.toml") == "file-config-app.toml"


def test_file_dependency_resolves_missing_directory(tmp_path: Path) -> None:
    dependency = FileDependency("var/cache/audits", is_directory=True, base_path=tmp_path)

    assert not dependency.is_satisfied()
    assert dependency.unsatisfied_reason() == "Required directory 'var/cache/audits' does not exist"
    assert dependency.resolve() is True
    assert (tmp_path / "var" / "cache" / "audits").is_dir()


def test_file_dependency_creates_empty_file_with_parents(tmp_path: Path) -> None:
    dependency = FileDependency("conf/audit.toml", base_path=tmp_path)

    assert dependency.resolve() is True
    assert (tmp_path / "conf" / "audit.toml").read_text(encoding="utf-8") == ""


def test_file_dependency_that_must_be_absent_removes_the_path(tmp_path: Path) -> None:
    leaked = tmp_path / ".env.backup"
    leaked.write_text("SECRET=1", encoding="utf-8")
    dependency = FileDependency(".env.backup", must_exist=False, base_path=tmp_path)

    assert not dependency.is_satisfied()
    assert dependency.unsatisfied_reason() == "Path '.env.backup' must not exist"
    assert dependency.resolve() is True
    assert not leaked.exists()


def test_file_dependency_resolve_failure_returns_false(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    dependency = FileDependency("blocker/child", is_directory=True, base_path=tmp_path)

    assert dependency.resolve() is False


def test_plugin_dependency_reports_each_unsatisfied_state() -> None:
    directory = _FakeDirectory()
    dependency = PluginDependency("core", directory, minimum_version="1.2.0")

    assert dependency.identifier == "plugin-core"
    assert dependency.unsatisfied_reason() == "Required plugin 'core' is not registered"

    directory.plugins["core"] = _FakePlugin(version="1.1.0")
    assert dependency.unsatisfied_reason() == "Required plugin 'core' is not enabled"

    directory.enabled.add("core")
    assert dependency.unsatisfied_reason() == (
        "Plugin 'core' version 1.1.0 is below required version 1.2.0"
    )

    directory.plugins["core"] = _FakePlugin(version="1.2.0")
    assert dependency.is_satisfied()


def test_plugin_dependency_resolve_enables_registered_plugin() -> None:
    directory = _FakeDirectory(plugins={"core": _FakePlugin(version="2.0.0")})
    dependency = PluginDependency("core", directory)

    assert dependency.resolve() is True
    assert directory.is_enabled("core")


def test_plugin_dependency_resolve_fails_for_unregistered_or_refused_plugin() -> None:
    assert PluginDependency("ghost", _FakeDirectory()).resolve() is False

    refusing = _FakeDirectory(plugins={"core": _FakePlugin(version="2.0.0")}, refuse=True)
    assert PluginDependency("core", refusing).resolve() is False
