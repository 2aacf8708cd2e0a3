"""Built-in dependency kinds: importable extension, system command, file path, plugin."""

from __future__ import annotations

import importlib.util
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from warden_orchestrator.constants import DEFAULT_DEPENDENCY_PRIORITY
from warden_orchestrator.dependencies.base import BaseDependency, ConfigOption, DependencyType
from warden_orchestrator.errors import WardenError
from warden_orchestrator.utils.versions import version_at_least


class PluginDirectory(Protocol):
    """Read/enable view of the plugin registry used by ``PluginDependency``."""

    def get(self, identifier: str) -> object | None: ...

    def is_enabled(self, identifier: str) -> bool: ...

    def enable(self, identifier: str) -> None: ...


def file_identifier(path: str) -> str:
    return "file-" + path.strip().strip("/").replace("/", "-")


class ExtensionDependency(BaseDependency):
    """Requires an importable Python module (the runtime's notion of an extension)."""

    def __init__(
        self,
        module: str,
        *,
        priority: int = DEFAULT_DEPENDENCY_PRIORITY,
        install_hint: str | None = None,
        config: Mapping[str, object] | None = None,
    ) -> None:
        self._module = module.strip()
        self._install_hint = install_hint
        super().__init__(
            f"python-extension-{self._module}",
            DependencyType.EXTENSION,
            priority=priority,
            config=config,
        )

    @property
    def module(self) -> str:
        return self._module

    def is_satisfied(self) -> bool:
        try:
            return importlib.util.find_spec(self._module) is not None
        except (ImportError, ValueError):
            return False

    def config_options(self) -> Mapping[str, ConfigOption]:
        return {
            "module": ConfigOption("string", "Importable module name", self._module),
        }

    def _describe_failure(self) -> str:
        reason = f"Python module '{self._module}' is not importable"
        if self._install_hint:
            reason += f" (install with: {self._install_hint})"
        return reason


class SystemCommandDependency(BaseDependency):
    """Requires an executable discoverable on ``PATH``."""

    def __init__(
        self,
        command: str,
        *,
        priority: int = DEFAULT_DEPENDENCY_PRIORITY,
        install_hint: str | None = None,
        search_path: str | None = None,
        config: Mapping[str, object] | None = None,
    ) -> None:
        self._command = command.strip()
        self._install_hint = install_hint
        self._search_path = search_path
        super().__init__(
            f"command-{self._command}",
            DependencyType.SYSTEM_COMMAND,
            priority=priority,
            config=config,
        )

    @property
    def command(self) -> str:
        return self._command

    def is_satisfied(self) -> bool:
        return shutil.which(self._command, path=self._search_path) is not None

    def config_options(self) -> Mapping[str, ConfigOption]:
        return {
            "command": ConfigOption("string", "Executable looked up on PATH", self._command),
            "install_hint": ConfigOption(
                "string", "Installation instructions shown when missing", self._install_hint
            ),
        }

    def _describe_failure(self) -> str:
        reason = f"System command '{self._command}' was not found on PATH"
        if self._install_hint:
            reason += f". {self._install_hint}"
        return reason


class FileDependency(BaseDependency):
    """Requires a path to exist (as file or directory) or to be absent.

    ``resolve`` creates a missing directory or empty file, including parent
    directories, or removes a path that must not exist. Directories are only
    removed when empty.
    """

    def __init__(
        self,
        path: str,
        *,
        must_exist: bool = True,
        is_directory: bool = False,
        base_path: str | Path | None = None,
        priority: int = DEFAULT_DEPENDENCY_PRIORITY,
        config: Mapping[str, object] | None = None,
    ) -> None:
        self._path = path.strip()
        self._must_exist = must_exist
        self._is_directory = is_directory
        self._base_path = Path(base_path) if base_path is not None else None
        super().__init__(
            file_identifier(self._path),
            DependencyType.FILE,
            priority=priority,
            config=config,
        )

    @property
    def path(self) -> Path:
        candidate = Path(self._path).expanduser()
        if candidate.is_absolute():
            return candidate
        base = self._base_path if self._base_path is not None else Path.cwd()
        return base / candidate

    @property
    def must_exist(self) -> bool:
        return self._must_exist

    @property
    def is_directory(self) -> bool:
        return self._is_directory

    def is_satisfied(self) -> bool:
        target = self.path
        if not self._must_exist:
            return not target.exists()
        if self._is_directory:
            return target.is_dir()
        return target.is_file()

    def resolve(self) -> bool:
        if self.is_satisfied():
            return True
        target = self.path
        try:
            if self._must_exist:
                if self._is_directory:
                    target.mkdir(parents=True, exist_ok=True)
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    target.touch(exist_ok=True)
            elif target.is_dir():
                target.rmdir()
            else:
                target.unlink(missing_ok=True)
        except OSError:
            return False
        return self.is_satisfied()

    def config_options(self) -> Mapping[str, ConfigOption]:
        return {
            "path": ConfigOption("string", "Path relative to the base directory", self._path),
            "must_exist": ConfigOption(
                "boolean", "Whether the path must exist or be absent", self._must_exist
            ),
            "is_directory": ConfigOption(
                "boolean", "Whether the path is a directory", self._is_directory
            ),
        }

    def _describe_failure(self) -> str:
        kind = "directory" if self._is_directory else "file"
        if self._must_exist:
            return f"Required {kind} '{self._path}' does not exist"
        return f"Path '{self._path}' must not exist"


class PluginDependency(BaseDependency):
    """Requires another plugin to be registered, enabled, and recent enough."""

    def __init__(
        self,
        required_plugin: str,
        directory: PluginDirectory,
        *,
        minimum_version: str = "1.0.0",
        priority: int = DEFAULT_DEPENDENCY_PRIORITY,
        config: Mapping[str, object] | None = None,
    ) -> None:
        self._required_plugin = required_plugin.strip()
        self._minimum_version = minimum_version
        self._directory = directory
        super().__init__(
            f"plugin-{self._required_plugin}",
            DependencyType.PLUGIN,
            priority=priority,
            config=config,
        )

    @property
    def required_plugin(self) -> str:
        return self._required_plugin

    @property
    def minimum_version(self) -> str:
        return self._minimum_version

    def is_satisfied(self) -> bool:
        plugin = self._directory.get(self._required_plugin)
        if plugin is None:
            return False
        if not self._directory.is_enabled(self._required_plugin):
            return False
        return version_at_least(_plugin_version(plugin), self._minimum_version)

    def resolve(self) -> bool:
        if self._directory.get(self._required_plugin) is None:
            return False
        try:
            self._directory.enable(self._required_plugin)
        except WardenError:
            return False
        return self.is_satisfied()

    def config_options(self) -> Mapping[str, ConfigOption]:
        return {
            "plugin": ConfigOption("string", "Required plugin identifier", self._required_plugin),
            "minimum_version": ConfigOption(
                "string", "Lowest acceptable plugin version", self._minimum_version
            ),
        }

    def _describe_failure(self) -> str:
        plugin = self._directory.get(self._required_plugin)
        if plugin is None:
            return f"Required plugin '{self._required_plugin}' is not registered"
        if not self._directory.is_enabled(self._required_plugin):
            return f"Required plugin '{self._required_plugin}' is not enabled"
        return (
            f"Plugin '{self._required_plugin}' version {_plugin_version(plugin)} "
            f"is below required version {self._minimum_version}"
        )


def _plugin_version(plugin: object) -> str:
    version = getattr(plugin, "version", "0.0.0")
    return version if isinstance(version, str) else "0.0.0"


__all__ = [
    "ExtensionDependency",
    "FileDependency",
    "PluginDependency",
    "PluginDirectory",
    "SystemCommandDependency",
    "file_identifier",
]
