"""
Audit run coordinator.

One ``AuditRunner.run`` call:
1. orders enabled plugins by their requirements (a cycle ends the run with a
   configuration error and no audits executed);
2. optionally asks the resolver to fix unsatisfied dependencies;
3. builds one task per audit handle through the task registry, skipping
   tasks whose dependencies are still unsatisfied;
4. reuses fresh cache entries unless a refresh is forced;
5. executes the remaining tasks and caches successful results;
6. merges findings, filters by minimum severity and attaches remediation.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog

from warden_orchestrator.config.settings import WardenSettings
from warden_orchestrator.dependencies.resolver import DependencyResolver
from warden_orchestrator.domain.findings import Finding
from warden_orchestrator.domain.severity import Severity
from warden_orchestrator.errors import CircularDependencyError
from warden_orchestrator.execution.cache import (
    AuditCache,
    CacheBackend,
    InMemoryCacheBackend,
    SqliteCacheBackend,
)
from warden_orchestrator.execution.executor import (
    AuditOutcome,
    AuditStatus,
    AuditTask,
    ParallelAuditExecutor,
)
from warden_orchestrator.observability.logging import run_scope
from warden_orchestrator.plugins.base import AuditPlugin
from warden_orchestrator.plugins.manager import PluginManager
from warden_orchestrator.reporting.aggregation import (
    filter_by_severity,
    highest_severity,
    merge,
    severity_counts,
)
from warden_orchestrator.reporting.remediation import RemediationAdvisor

AuditTaskFactory = Callable[[AuditPlugin, Mapping[str, object]], AuditTask]


@dataclass(frozen=True, slots=True)
class TaskRegistration:
    handle: str
    factory: AuditTaskFactory


class AuditTaskRegistry:
    """Maps audit handles to factories that build a task for a plugin."""

    def __init__(self) -> None:
        self._registrations: dict[str, TaskRegistration] = {}

    def register(self, handle: str, factory: AuditTaskFactory) -> None:
        normalized = handle.strip()
        if not normalized:
            raise ValueError("audit handle must not be empty")
        if not callable(factory):
            raise TypeError(f"factory for {normalized!r} must be callable")
        if normalized in self._registrations:
            raise ValueError(f"audit handle {normalized!r} is already registered")
        self._registrations[normalized] = TaskRegistration(handle=normalized, factory=factory)

    def contains(self, handle: str) -> bool:
        return handle in self._registrations

    def create(
        self, handle: str, plugin: AuditPlugin, config: Mapping[str, object]
    ) -> AuditTask:
        registration = self._registrations.get(handle)
        if registration is None:
            known = ", ".join(self.registered_handles())
            raise KeyError(f"unknown audit handle {handle!r}; registered: [{known}]")
        task = registration.factory(plugin, config)
        if not isinstance(task, AuditTask):
            raise TypeError(f"factory for {handle!r} did not return an audit task")
        return task

    def registered_handles(self) -> tuple[str, ...]:
        return tuple(sorted(self._registrations))


@dataclass(frozen=True, slots=True)
class AuditRunRequest:
    force_refresh: bool = False
    minimum_severity: Severity | str | None = None
    include_remediation: bool = True
    auto_resolve: bool = False
    handles: frozenset[str] | None = None


@dataclass(frozen=True, slots=True)
class SkippedAudit:
    handle: str
    plugin: str
    reason: str
    missing: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AuditReport:
    findings: tuple[Finding, ...]
    outcomes: Mapping[str, AuditOutcome]
    started_at: datetime
    finished_at: datetime
    cached: tuple[str, ...] = ()
    skipped: tuple[SkippedAudit, ...] = ()
    configuration_errors: tuple[str, ...] = ()
    run_id: str = ""
    failed: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        failed = tuple(name for name, outcome in self.outcomes.items() if not outcome.success)
        object.__setattr__(self, "failed", failed)

    @property
    def degraded(self) -> tuple[str, ...]:
        """Audits that crashed or timed out, as opposed to ones that reported a result."""
        return tuple(name for name, outcome in self.outcomes.items() if outcome.degraded)

    @property
    def ok(self) -> bool:
        return not self.configuration_errors and not self.failed

    @property
    def duration_seconds(self) -> float:
        return max((self.finished_at - self.started_at).total_seconds(), 0.0)

    def summary(self) -> dict[str, object]:
        counts = severity_counts(self.findings)
        return {
            "run_id": self.run_id,
            "total_findings": len(self.findings),
            "highest_severity": highest_severity(self.findings).value,
            "by_severity": {severity.value: count for severity, count in counts.items()},
            "audits": len(self.outcomes),
            "cached": len(self.cached),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "degraded": len(self.degraded),
            "configuration_errors": len(self.configuration_errors),
        }


class AuditRunner:
    def __init__(
        self,
        *,
        manager: PluginManager,
        resolver: DependencyResolver,
        cache: AuditCache,
        executor: ParallelAuditExecutor,
        tasks: AuditTaskRegistry,
        advisor: RemediationAdvisor | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: Any | None = None,
    ) -> None:
        self._manager = manager
        self._resolver = resolver
        self._cache = cache
        self._executor = executor
        self._tasks = tasks
        self._advisor = advisor if advisor is not None else RemediationAdvisor()
        self._clock = clock if clock is not None else (lambda: datetime.now(UTC))
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def manager(self) -> PluginManager:
        return self._manager

    @property
    def resolver(self) -> DependencyResolver:
        return self._resolver

    @property
    def cache(self) -> AuditCache:
        return self._cache

    async def run(self, request: AuditRunRequest | None = None) -> AuditReport:
        request = request if request is not None else AuditRunRequest()
        run_id = uuid4().hex[:12]
        started_at = self._clock()
        with run_scope(run_id=run_id):
            self._logger.info(
                "audit_run_started",
                force_refresh=request.force_refresh,
                auto_resolve=request.auto_resolve,
            )
            try:
                handles = self._manager.audit_classes()
            except CircularDependencyError as exc:
                self._logger.error("audit_run_aborted", reason=str(exc))
                return AuditReport(
                    findings=(),
                    outcomes={},
                    started_at=started_at,
                    finished_at=self._clock(),
                    configuration_errors=(str(exc),),
                    run_id=run_id,
                )

            if request.auto_resolve:
                self._resolver.resolve_all()

            order: list[str] = []
            outcomes: dict[str, AuditOutcome] = {}
            cached: list[str] = []
            skipped: list[SkippedAudit] = []
            errors: list[str] = []

            for handle, plugin_id in handles.items():
                if request.handles is not None and handle not in request.handles:
                    continue
                plugin = self._manager.get(plugin_id)
                if plugin is None:
                    continue
                task = self._build_task(handle, plugin, skipped, errors)
                if task is None:
                    continue

                missing = self._missing_dependencies(plugin, task)
                if missing:
                    self._logger.warning(
                        "audit_skipped", audit=task.name, plugin=plugin_id, missing=missing
                    )
                    skipped.append(
                        SkippedAudit(
                            handle=handle,
                            plugin=plugin_id,
                            reason="unsatisfied dependencies",
                            missing=tuple(missing),
                        )
                    )
                    continue

                name = task.name
                if name not in order:
                    order.append(name)
                if not request.force_refresh and self._cache.has_recent(name):
                    entry = self._cache.get(name)
                    if entry is not None:
                        outcomes[name] = AuditOutcome(
                            name=name,
                            success=True,
                            findings=entry.findings(),
                            status=AuditStatus.PASSED,
                            task=task,
                            cached=True,
                        )
                        cached.append(name)
                        self._logger.info("audit_cache_hit", audit=name)
                        continue
                config = self._manager.get_config(plugin_id)
                self._executor.add_audit(
                    task,
                    timeout_seconds=_number_setting(config, "timeout_seconds"),
                    priority=int(_number_setting(config, "priority") or 0),
                )

            executed = await self._executor.execute()
            for name, outcome in executed.items():
                outcomes[name] = outcome
                if outcome.success and not outcome.degraded:
                    self._cache.store(name, outcome.findings)

            ordered = {name: outcomes[name] for name in order if name in outcomes}
            findings = self._collect_findings(ordered, request)
            report = AuditReport(
                findings=tuple(findings),
                outcomes=ordered,
                started_at=started_at,
                finished_at=self._clock(),
                cached=tuple(cached),
                skipped=tuple(skipped),
                configuration_errors=tuple(errors),
                run_id=run_id,
            )
            self._logger.info(
                "audit_run_finished",
                audits=len(ordered),
                findings=len(findings),
                cached=len(cached),
                skipped=len(skipped),
                failed=list(report.failed),
            )
            return report

    def run_sync(self, request: AuditRunRequest | None = None) -> AuditReport:
        return asyncio.run(self.run(request))

    def _build_task(
        self,
        handle: str,
        plugin: AuditPlugin,
        skipped: list[SkippedAudit],
        errors: list[str],
    ) -> AuditTask | None:
        if not self._tasks.contains(handle):
            self._logger.warning("audit_factory_missing", handle=handle, plugin=plugin.identifier)
            skipped.append(
                SkippedAudit(
                    handle=handle, plugin=plugin.identifier, reason="no task factory registered"
                )
            )
            return None
        try:
            return self._tasks.create(handle, plugin, self._manager.get_config(plugin.identifier))
        except Exception as exc:  # noqa: BLE001
            message = f"audit {handle!r} could not be built: {type(exc).__name__}: {exc}"
            self._logger.error("audit_factory_failed", handle=handle, error=message)
            errors.append(message)
            return None

    def _missing_dependencies(self, plugin: AuditPlugin, task: AuditTask) -> list[str]:
        identifiers: list[str] = []
        required = getattr(plugin, "required_dependencies", None)
        if callable(required):
            identifiers.extend(required())
        identifiers.extend(getattr(task, "requires", ()) or ())
        missing: list[str] = []
        for identifier in identifiers:
            if identifier not in missing and not self._resolver.is_satisfied(identifier):
                missing.append(identifier)
        return missing

    def _collect_findings(
        self, outcomes: Mapping[str, AuditOutcome], request: AuditRunRequest
    ) -> Sequence[Finding]:
        findings: Sequence[Finding] = merge(outcomes)
        if request.minimum_severity is not None:
            findings = filter_by_severity(findings, request.minimum_severity)
        if request.include_remediation:
            findings = self._advisor.enrich(findings)
        return findings


def _number_setting(config: Mapping[str, object], key: str) -> float | None:
    value = config.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def build_runner(
    settings: WardenSettings,
    tasks: AuditTaskRegistry,
    *,
    logger: Any | None = None,
) -> AuditRunner:
    """Wire resolver, plugin manager, cache and executor from settings."""
    resolver = DependencyResolver(logger=logger)
    manager = PluginManager(
        resolver=resolver,
        plugin_settings=settings.plugins.as_dict(),
        logger=logger,
    )
    backend: CacheBackend
    if settings.cache.backend == "sqlite":
        backend = SqliteCacheBackend(settings.cache.path)
    else:
        backend = InMemoryCacheBackend()
    cache = AuditCache(
        backend,
        duration_seconds=settings.cache.duration_seconds,
        enabled=settings.cache.enabled,
        logger=logger,
    )
    executor = ParallelAuditExecutor(
        parallel=settings.execution.parallel,
        max_workers=settings.execution.max_workers,
        default_timeout_seconds=settings.execution.default_timeout_seconds,
        logger=logger,
    )
    return AuditRunner(
        manager=manager,
        resolver=resolver,
        cache=cache,
        executor=executor,
        tasks=tasks,
        logger=logger,
    )


__all__ = [
    "AuditReport",
    "AuditRunRequest",
    "AuditRunner",
    "AuditTaskFactory",
    "AuditTaskRegistry",
    "SkippedAudit",
    "TaskRegistration",
    "build_runner",
]
