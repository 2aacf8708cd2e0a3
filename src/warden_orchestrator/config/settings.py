"""Typed, immutable views over a validated config mapping."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from warden_orchestrator.config.schema import assert_valid_config, default_config


@dataclass(frozen=True, slots=True)
class CacheSettings:
    enabled: bool
    duration_seconds: float
    backend: str
    path: Path


@dataclass(frozen=True, slots=True)
class ExecutionSettings:
    parallel: bool
    max_workers: int
    default_timeout_seconds: float


@dataclass(frozen=True, slots=True)
class ObservabilitySettings:
    log_level: str
    log_format: str


@dataclass(frozen=True, slots=True)
class PluginSettings:
    """Per-plugin configuration from ``[plugins.<id>]``, keyed by identifier."""

    sections: Mapping[str, Mapping[str, object]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def for_plugin(self, identifier: str) -> dict[str, object]:
        return dict(self.sections.get(identifier, {}))

    def as_dict(self) -> dict[str, dict[str, object]]:
        return {key: dict(value) for key, value in self.sections.items()}


@dataclass(frozen=True, slots=True)
class WardenSettings:
    cache: CacheSettings
    execution: ExecutionSettings
    observability: ObservabilitySettings
    plugins: PluginSettings
    schema_version: int

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> WardenSettings:
        """Build settings from a config mapping, validating it first."""
        validated: dict[str, Any] = assert_valid_config(config)
        cache = validated["cache"]
        execution = validated["execution"]
        observability = validated["observability"]
        plugins = validated.get("plugins", {})
        return cls(
            cache=CacheSettings(
                enabled=cache["enabled"],
                duration_seconds=cache["duration_seconds"],
                backend=cache["backend"],
                path=Path(cache["path"]),
            ),
            execution=ExecutionSettings(
                parallel=execution["parallel"],
                max_workers=execution["max_workers"],
                default_timeout_seconds=execution["default_timeout_seconds"],
            ),
            observability=ObservabilitySettings(
                log_level=observability["log_level"],
                log_format=observability["log_format"],
            ),
            plugins=PluginSettings(
                sections=MappingProxyType(
                    {key: MappingProxyType(dict(value)) for key, value in plugins.items()}
                )
            ),
            schema_version=validated["meta"]["schema_version"],
        )

    @classmethod
    def defaults(cls) -> WardenSettings:
        return cls.from_config(default_config())


__all__ = [
    "CacheSettings",
    "ExecutionSettings",
    "ObservabilitySettings",
    "PluginSettings",
    "WardenSettings",
]
