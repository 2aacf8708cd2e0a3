"""Unit tests for remediation suggestions."""

from __future__ import annotations

import pytest

from warden_orchestrator.domain.findings import Finding, Remediation, RemediationPriority
from warden_orchestrator.domain.severity import Severity
from warden_orchestrator.reporting.remediation import RemediationAdvisor, remediation_priorities


def _finding(source: str, **overrides: object) -> Finding:
    fields: dict[str, object] = {
        "source": source,
        "package": "lodash",
        "title": "Prototype pollution",
        "severity": "high",
    }
    fields.update(overrides)
    return Finding(**fields)  # type: ignore[arg-type]


@pytest.fixture()
def advisor() -> RemediationAdvisor:
    return RemediationAdvisor()


@pytest.mark.parametrize(
    ("severity", "expected"),
    [
        ("critical", RemediationPriority.IMMEDIATE),
        ("high", RemediationPriority.HIGH),
        ("moderate", RemediationPriority.MEDIUM),
        ("low", RemediationPriority.LOW),
        ("unknown", RemediationPriority.LOW),
    ],
)
def test_priority_follows_severity(
    advisor: RemediationAdvisor, severity: str, expected: RemediationPriority
) -> None:
    assert advisor.suggest(_finding("npm", severity=severity)).priority is expected


def test_npm_suggestion_updates_the_package(advisor: RemediationAdvisor) -> None:
    remediation = advisor.suggest(_finding("npm", cve="CVE-2021-23337"))

    assert remediation.commands == ("npm update lodash", "npm audit fix", "npm audit")
    assert remediation.links == (
        "https://nvd.nist.gov/vuln/detail/CVE-2021-23337",
        "https://www.npmjs.com/package/lodash",
    )


def test_source_lookup_ignores_case_and_whitespace(advisor: RemediationAdvisor) -> None:
    remediation = advisor.suggest(_finding("  Composer Audit ", package="symfony/http-kernel"))

    assert remediation.commands == ("composer update symfony/http-kernel", "composer audit")
    assert "https://packagist.org/packages/symfony/http-kernel" in remediation.links


def test_pip_skips_upgrade_for_placeholder_package(advisor: RemediationAdvisor) -> None:
    named = advisor.suggest(_finding("pip-audit", package="django", cve="CVE-2024-1"))
    unnamed = advisor.suggest(_finding("pip", package="unknown"))

    assert named.commands == ("pip install --upgrade django", "pip-audit")
    assert named.links == (
        "https://nvd.nist.gov/vuln/detail/CVE-2024-1",
        "https://github.com/advisories?query=CVE-2024-1",
        "https://pypi.org/project/django/",
    )
    assert unnamed.commands == ("pip-audit",)
    assert unnamed.links == ()


def test_file_permission_suggestion_targets_dotenv(advisor: RemediationAdvisor) -> None:
    remediation = advisor.suggest(_finding("File Permissions", title=".env is world readable"))

    assert remediation.commands == ("chmod 600 .env",)
    assert remediation.manual_steps[0] == "Ensure the .env file is only readable by its owner"


def test_keyword_driven_steps(advisor: RemediationAdvisor) -> None:
    docker = advisor.suggest(_finding("docker", title="Runs as root from latest image"))
    headers = advisor.suggest(_finding("security headers", title="Missing CSP and HSTS"))
    database = advisor.suggest(_finding("database security", title="Connection without TLS"))

    assert len(docker.manual_steps) == 3
    assert any("Content-Security-Policy" in step for step in headers.manual_steps)
    assert any("Strict-Transport-Security" in step for step in headers.manual_steps)
    assert database.manual_steps[0] == "Require SSL/TLS for database connections"


def test_unknown_source_gets_generic_advice(advisor: RemediationAdvisor) -> None:
    remediation = advisor.suggest(_finding("custom-scanner", cve="CVE-2020-5"))

    assert remediation.description.startswith("Review the security finding")
    assert remediation.links == ("https://nvd.nist.gov/vuln/detail/CVE-2020-5",)
    assert "custom-scanner" not in advisor.known_sources
    assert "npm audit" in advisor.known_sources


def test_enrich_returns_copies(advisor: RemediationAdvisor) -> None:
    original = _finding("npm")

    [enriched] = advisor.enrich([original])

    assert original.remediation is None
    assert isinstance(enriched.remediation, Remediation)
    assert enriched.with_(remediation=None) == original
    assert len(advisor.suggest_all([original, original])) == 2


def test_remediation_priorities_prefers_attached_remediation() -> None:
    attached = _finding("npm", severity=Severity.LOW).with_remediation(
        Remediation("fix now", priority=RemediationPriority.IMMEDIATE)
    )

    counts = remediation_priorities([attached, _finding("npm", severity="high")])

    assert counts[RemediationPriority.IMMEDIATE] == 1
    assert counts[RemediationPriority.HIGH] == 1
    assert counts[RemediationPriority.LOW] == 0
