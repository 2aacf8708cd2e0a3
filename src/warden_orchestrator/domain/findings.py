"""Immutable finding and remediation value objects."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any

from warden_orchestrator.domain.severity import Severity

_UNSET: Any = object()


class RemediationPriority(StrEnum):
    IMMEDIATE = "immediate"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def for_severity(cls, severity: Severity) -> RemediationPriority:
        if severity is Severity.CRITICAL:
            return cls.IMMEDIATE
        if severity is Severity.HIGH:
            return cls.HIGH
        if severity in (Severity.MEDIUM, Severity.MODERATE):
            return cls.MEDIUM
        return cls.LOW


@dataclass(frozen=True, slots=True)
class Remediation:
    """Suggested fix for a finding."""

    description: str
    commands: tuple[str, ...] = ()
    manual_steps: tuple[str, ...] = ()
    links: tuple[str, ...] = ()
    priority: RemediationPriority = RemediationPriority.MEDIUM

    def __post_init__(self) -> None:
        object.__setattr__(self, "commands", tuple(self.commands))
        object.__setattr__(self, "manual_steps", tuple(self.manual_steps))
        object.__setattr__(self, "links", tuple(self.links))
        object.__setattr__(self, "priority", RemediationPriority(self.priority))

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Remediation:
        description = data.get("description")
        priority = data.get("priority")
        try:
            parsed_priority = RemediationPriority(priority) if isinstance(priority, str) else None
        except ValueError:
            parsed_priority = None
        if not isinstance(description, str):
            description = "No remediation available"
        return cls(
            description=description,
            commands=_string_items(data.get("commands")),
            manual_steps=_string_items(data.get("manual_steps")),
            links=_string_items(data.get("links")),
            priority=parsed_priority or RemediationPriority.MEDIUM,
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "description": self.description,
            "priority": self.priority.value,
        }
        if self.commands:
            payload["commands"] = list(self.commands)
        if self.manual_steps:
            payload["manual_steps"] = list(self.manual_steps)
        if self.links:
            payload["links"] = list(self.links)
        return payload

    @property
    def has_commands(self) -> bool:
        return bool(self.commands)

    @property
    def has_manual_steps(self) -> bool:
        return bool(self.manual_steps)

    @property
    def has_links(self) -> bool:
        return bool(self.links)

    @property
    def is_immediate(self) -> bool:
        return self.priority is RemediationPriority.IMMEDIATE

    @property
    def is_high_priority(self) -> bool:
        return self.priority in (RemediationPriority.IMMEDIATE, RemediationPriority.HIGH)

    def summary(self) -> str:
        parts = [f"[{self.priority.value.upper()}] {self.description}"]
        if self.commands:
            parts.append("Commands: " + "; ".join(self.commands))
        return " | ".join(parts)

    def with_(self, **changes: Any) -> Remediation:
        return replace(self, **changes)


@dataclass(frozen=True, slots=True)
class Finding:
    """One reported issue produced by an audit task.

    Findings are never mutated; enrichment goes through ``with_`` which
    returns a copy with the requested fields replaced.
    """

    source: str
    package: str
    title: str
    severity: Severity
    cve: str | None = None
    affected_versions: str | None = None
    error: str | None = None
    remediation: Remediation | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "severity", Severity.parse(self.severity))

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Finding:
        remediation_raw = data.get("remediation")
        return cls(
            source=_string_or(data.get("source"), "unknown"),
            package=_string_or(data.get("package"), "unknown"),
            title=_string_or(data.get("title"), "Unknown vulnerability"),
            severity=Severity.parse(_string_or(data.get("severity"), "unknown")),
            cve=_optional_string(data.get("cve")),
            affected_versions=_optional_string(data.get("affected_versions")),
            error=_optional_string(data.get("error")),
            remediation=(
                Remediation.from_dict(remediation_raw)
                if isinstance(remediation_raw, Mapping)
                else None
            ),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "source": self.source,
            "package": self.package,
            "title": self.title,
            "severity": self.severity.value,
        }
        if self.cve is not None:
            payload["cve"] = self.cve
        if self.affected_versions is not None:
            payload["affected_versions"] = self.affected_versions
        if self.error is not None:
            payload["error"] = self.error
        if self.remediation is not None:
            payload["remediation"] = self.remediation.to_dict()
        return payload

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL

    @property
    def is_high(self) -> bool:
        return self.severity is Severity.HIGH

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR or self.error is not None

    @property
    def has_remediation(self) -> bool:
        return self.remediation is not None

    def summary(self) -> str:
        return f"[{self.severity.value.upper()}] {self.package}: {self.title} ({self.source})"

    def with_(
        self,
        *,
        source: str = _UNSET,
        package: str = _UNSET,
        title: str = _UNSET,
        severity: Severity = _UNSET,
        cve: str | None = _UNSET,
        affected_versions: str | None = _UNSET,
        error: str | None = _UNSET,
        remediation: Remediation | None = _UNSET,
    ) -> Finding:
        """Return a copy with the given fields replaced."""
        changes = {
            name: value
            for name, value in (
                ("source", source),
                ("package", package),
                ("title", title),
                ("severity", severity),
                ("cve", cve),
                ("affected_versions", affected_versions),
                ("error", error),
                ("remediation", remediation),
            )
            if value is not _UNSET
        }
        return replace(self, **changes)

    def with_remediation(self, remediation: Remediation) -> Finding:
        return replace(self, remediation=remediation)


def _string_or(value: object, default: str) -> str:
    return value if isinstance(value, str) else default


def _optional_string(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _string_items(value: object) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, Sequence):
        return ()
    return tuple(item for item in value if isinstance(item, str))


__all__ = ["Finding", "Remediation", "RemediationPriority"]
