"""End-to-end audit run: config file to report, with a persistent cache."""

from __future__ import annotations

import io
import json
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import pytest

from warden_orchestrator.config import WardenSettings, load_config
from warden_orchestrator.dependencies.resolver import DependencyResolver
from warden_orchestrator.domain.findings import Finding
from warden_orchestrator.observability import configure_logging, reset_logging
from warden_orchestrator.orchestration import AuditRunRequest, AuditTaskRegistry, build_runner
from warden_orchestrator.plugins.base import AuditPlugin, BasePlugin

_CONFIG = """
[cache]
backend = "sqlite"
path = "state/cache.sqlite3"

[execution]
parallel = true
max_workers = 2

[observability]
log_level = "info"

[plugins.dependency-audit]
timeout_seconds = 30
"""


class DependencyAuditPlugin(BasePlugin):
    handles = ("npm", "composer")

    def register_dependencies(self, resolver: DependencyResolver) -> None:
        self.require(resolver, resolver.create_extension_dependency("json"))


@dataclass
class _LockfileAudit:
    name: str
    lockfile: Path

    def run(self) -> bool:
        return not self.findings()

    def findings(self) -> Sequence[Finding]:
        payload = json.loads(self.lockfile.read_text(encoding="utf-8"))
        return [Finding.from_dict({"source": self.name, **item}) for item in payload]


@pytest.fixture(autouse=True)
def _restore_structlog() -> Iterator[None]:
    yield
    reset_logging()


def _registry(project: Path) -> AuditTaskRegistry:
    registry = AuditTaskRegistry()
    for handle in ("npm", "composer"):

        def factory(
            plugin: AuditPlugin, config: Mapping[str, object], handle: str = handle
        ) -> _LockfileAudit:
            return _LockfileAudit(handle, project / f"{handle}.json")

        registry.register(handle, factory)
    return registry


def test_configured_run_persists_results_between_processes(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    (project / "warden.toml").write_text(_CONFIG, encoding="utf-8")
    (project / "npm.json").write_text(
        json.dumps(
            [
                {"package": "lodash", "title": "Prototype pollution", "severity": "high"},
                {"package": "minimist", "title": "Prototype pollution", "severity": "moderate"},
            ]
        ),
        encoding="utf-8",
    )
    (project / "composer.json").write_text("[]", encoding="utf-8")
    stream = io.StringIO()

    settings = WardenSettings.from_config(load_config(project / "warden.toml", environ={}))
    configure_logging(settings.observability, stream=stream)

    first_runner = build_runner(settings, _registry(project))
    first_runner.manager.register(DependencyAuditPlugin())
    first = first_runner.run_sync(AuditRunRequest(minimum_severity="high"))

    assert settings.cache.path == tmp_path.resolve() / "project" / "state" / "cache.sqlite3"
    assert settings.cache.path.exists()
    assert list(first.outcomes) == ["npm", "composer"]
    assert first.failed == ("npm",)
    assert first.degraded == ()
    assert [finding.package for finding in first.findings] == ["lodash"]
    assert first.findings[0].remediation is not None
    assert first.findings[0].remediation.commands[0] == "npm update lodash"

    second_runner = build_runner(settings, _registry(project))
    second_runner.manager.register(DependencyAuditPlugin())
    second = second_runner.run_sync()

    assert second.cached == ("composer",)
    assert second.outcomes["composer"].cached
    assert not second.outcomes["npm"].cached

    records = [json.loads(line) for line in stream.getvalue().splitlines()]
    completed = [record for record in records if record["event"] == "audit_completed"]
    assert {record["audit"] for record in completed} == {"npm", "composer"}
    assert all(record["run_id"] == first.run_id for record in completed[:2])
    assert any(record["event"] == "audit_cache_hit" for record in records)
