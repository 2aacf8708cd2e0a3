"""Unit tests for reporting adapter contracts."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence

from warden_orchestrator.domain.findings import Finding
from warden_orchestrator.reporting import (
    AbandonedPackage,
    NotificationChannel,
    ReportFormatter,
    severity_counts,
)


class _MemoryChannel:
    def __init__(self) -> None:
        self.sent: list[Sequence[Finding]] = []
        self.abandoned: list[Sequence[AbandonedPackage]] = []

    @property
    def name(self) -> str:
        return "memory"

    def is_configured(self) -> bool:
        return True

    def send(self, findings: Sequence[Finding]) -> None:
        self.sent.append(findings)

    def send_abandoned_packages(self, packages: Sequence[AbandonedPackage]) -> None:
        self.abandoned.append(packages)


class _JsonFormatter:
    def format(self, findings: Sequence[Finding], metadata: Mapping[str, object]) -> str:
        summary = {severity.value: count for severity, count in severity_counts(findings).items()}
        return json.dumps(
            {
                "metadata": dict(metadata),
                "summary": summary,
                "findings": [finding.to_dict() for finding in findings],
            },
            sort_keys=True,
        )


def test_adapters_satisfy_the_runtime_protocols() -> None:
    assert isinstance(_MemoryChannel(), NotificationChannel)
    assert isinstance(_JsonFormatter(), ReportFormatter)
    assert not isinstance(object(), NotificationChannel)


def test_formatter_contract_produces_summary_and_findings() -> None:
    findings = [Finding(source="npm", package="lodash", title="Pollution", severity="high")]

    payload = json.loads(_JsonFormatter().format(findings, {"trigger": "schedule"}))

    assert payload["summary"]["high"] == 1
    assert payload["findings"][0]["package"] == "lodash"
    assert payload["metadata"] == {"trigger": "schedule"}


def test_abandoned_package_serializes() -> None:
    assert AbandonedPackage("swiftmailer/swiftmailer", "symfony/mailer").to_dict() == {
        "package": "swiftmailer/swiftmailer",
        "replacement": "symfony/mailer",
    }
    assert AbandonedPackage("left-pad").to_dict() == {"package": "left-pad", "replacement": None}
