"""Contracts for outward surfaces that consume findings.

The orchestration core never calls these; they describe what notification
and report adapters built on top of it are expected to provide.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from warden_orchestrator.domain.findings import Finding


@dataclass(frozen=True, slots=True)
class AbandonedPackage:
    package: str
    replacement: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"package": self.package, "replacement": self.replacement}


@runtime_checkable
class NotificationChannel(Protocol):
    @property
    def name(self) -> str: ...

    def is_configured(self) -> bool: ...

    def send(self, findings: Sequence[Finding]) -> None: ...

    def send_abandoned_packages(self, packages: Sequence[AbandonedPackage]) -> None: ...


@runtime_checkable
class ReportFormatter(Protocol):
    def format(self, findings: Sequence[Finding], metadata: Mapping[str, object]) -> str: ...


__all__ = ["AbandonedPackage", "NotificationChannel", "ReportFormatter"]
