"""Stable constants shared across the orchestration core."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Host version advertised to plugins for compatibility windows.
HOST_VERSION: Final[str] = "2.0.0"

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Dependency defaults.
DEFAULT_DEPENDENCY_PRIORITY: Final[int] = 100

# Plugin defaults merged under every plugin's own default configuration.
DEFAULT_PLUGIN_PRIORITY: Final[int] = 100
DEFAULT_PLUGIN_TIMEOUT_SECONDS: Final[float] = 300.0

# Cache defaults.
DEFAULT_CACHE_DURATION_SECONDS: Final[int] = 3600
CACHE_KEY_PREFIX: Final[str] = "warden:audit:"
DEFAULT_CACHE_PATH: Final[PurePosixPath] = PurePosixPath(".warden/cache.sqlite3")

# Execution defaults.
DEFAULT_MAX_WORKERS: Final[int] = 4
DEFAULT_TASK_TIMEOUT_SECONDS: Final[float] = 300.0

__all__ = [
    "CACHE_KEY_PREFIX",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CACHE_DURATION_SECONDS",
    "DEFAULT_CACHE_PATH",
    "DEFAULT_DEPENDENCY_PRIORITY",
    "DEFAULT_MAX_WORKERS",
    "DEFAULT_PLUGIN_PRIORITY",
    "DEFAULT_PLUGIN_TIMEOUT_SECONDS",
    "DEFAULT_TASK_TIMEOUT_SECONDS",
    "HOST_VERSION",
]
