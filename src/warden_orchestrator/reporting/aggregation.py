"""Pure helpers for merging, filtering, grouping and ranking findings."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Protocol

from warden_orchestrator.domain.findings import Finding
from warden_orchestrator.domain.severity import Severity


class _HasFindings(Protocol):
    @property
    def findings(self) -> Sequence[Finding]: ...


def merge(results: Mapping[str, _HasFindings | Sequence[Finding]]) -> list[Finding]:
    """Flatten per-audit findings in the iteration order of ``results``.

    Values may be executor outcomes or plain finding sequences. Crashed or
    timed-out audits carry no findings, so they contribute nothing.
    """
    merged: list[Finding] = []
    for value in results.values():
        findings = value.findings if hasattr(value, "findings") else value
        merged.extend(findings)
    return merged


def filter_by_severity(findings: Iterable[Finding], minimum: Severity | str) -> list[Finding]:
    """Keep findings ranked at or above ``minimum``; ``moderate`` ties ``medium``."""
    threshold = Severity.parse(minimum)
    return [finding for finding in findings if finding.severity.is_at_least(threshold)]


def group_by_source(findings: Iterable[Finding]) -> dict[str, list[Finding]]:
    grouped: dict[str, list[Finding]] = {}
    for finding in findings:
        grouped.setdefault(finding.source, []).append(finding)
    return grouped


def highest_severity(findings: Iterable[Finding]) -> Severity:
    """Most severe finding's severity; ``unknown`` for an empty input.

    On a priority tie the first finding encountered wins.
    """
    highest: Severity | None = None
    for finding in findings:
        if highest is None or finding.severity.priority > highest.priority:
            highest = finding.severity
    return highest if highest is not None else Severity.UNKNOWN


def severity_counts(findings: Iterable[Finding]) -> dict[Severity, int]:
    counts = {severity: 0 for severity in Severity.sorted_by_priority()}
    for finding in findings:
        counts[finding.severity] += 1
    return counts


def sort_by_severity(findings: Iterable[Finding]) -> list[Finding]:
    """Most severe first; findings of equal priority keep their order."""
    return sorted(findings, key=lambda finding: finding.severity.priority, reverse=True)


__all__ = [
    "filter_by_severity",
    "group_by_source",
    "highest_severity",
    "merge",
    "severity_counts",
    "sort_by_severity",
]
