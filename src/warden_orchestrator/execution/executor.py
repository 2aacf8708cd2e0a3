"""
Parallel audit executor.

Runs the audits queued with ``add_audit`` either one after another or on a
bounded worker pool. Every queued audit yields exactly one ``AuditOutcome``:
an exception or timeout inside one audit becomes an ``error``/``timeout``
outcome with no findings and never affects its siblings. Results are keyed by
audit name in the order audits were added; audits start in priority order.

Synchronous audits run on a thread pool owned by one ``execute`` call and
sized to ``max_workers``. A thread cannot be killed: a timed-out sync audit
keeps its thread until ``run`` returns, the pool is shut down without waiting
for it, and the thread still counts against ``max_workers`` for the rest of
that call. Sync audits that spawn processes should pass their own timeout
down, e.g. ``subprocess.run(..., timeout=...)``.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Awaitable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

import structlog

from warden_orchestrator.constants import DEFAULT_MAX_WORKERS, DEFAULT_TASK_TIMEOUT_SECONDS
from warden_orchestrator.domain.findings import Finding
from warden_orchestrator.errors import AuditTimeoutError
from warden_orchestrator.utils.concurrency import (
    CancellationToken,
    WorkerPool,
    call_maybe_async,
    run_with_timeout,
)


@runtime_checkable
class AuditTask(Protocol):
    """Unit of audit work.

    ``run`` may be sync or async and returns ``True`` when the audit finished
    cleanly. Optional attributes: ``timeout_seconds`` and ``requires`` (the
    dependency identifiers the audit needs).
    """

    @property
    def name(self) -> str: ...

    def run(self) -> bool | Awaitable[bool]: ...

    def findings(self) -> Sequence[Finding]: ...


class AuditStatus(StrEnum):
    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class AuditOutcome:
    """Result of one audit in one execution."""

    name: str
    success: bool
    findings: tuple[Finding, ...]
    status: AuditStatus
    task: AuditTask | None = None
    duration_ms: int = 0
    error: str | None = None
    exception: BaseException | None = None
    cached: bool = False

    @property
    def degraded(self) -> bool:
        """True when the audit crashed or timed out rather than reporting a result."""
        return self.status in (AuditStatus.ERROR, AuditStatus.TIMEOUT)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "name": self.name,
            "success": self.success,
            "status": self.status.value,
            "findings": [finding.to_dict() for finding in self.findings],
            "duration_ms": self.duration_ms,
            "cached": self.cached,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True, slots=True)
class _QueuedAudit:
    task: AuditTask
    timeout_seconds: float | None = None
    priority: int = 0


class ParallelAuditExecutor:
    """Executes queued audits with failure isolation and per-audit timeouts."""

    def __init__(
        self,
        *,
        parallel: bool = True,
        max_workers: int = DEFAULT_MAX_WORKERS,
        default_timeout_seconds: float = DEFAULT_TASK_TIMEOUT_SECONDS,
        logger: Any | None = None,
    ) -> None:
        if max_workers <= 0:
            raise ValueError("max_workers must be > 0")
        if default_timeout_seconds <= 0:
            raise ValueError("default_timeout_seconds must be > 0")
        self._parallel = parallel
        self._max_workers = max_workers
        self._default_timeout = float(default_timeout_seconds)
        self._audits: dict[str, _QueuedAudit] = {}
        self._results: dict[str, AuditOutcome] = {}
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def parallel(self) -> bool:
        return self._parallel

    @property
    def pending(self) -> tuple[str, ...]:
        return tuple(self._audits)

    @property
    def results(self) -> Mapping[str, AuditOutcome]:
        return dict(self._results)

    def add_audit(
        self,
        task: AuditTask,
        *,
        timeout_seconds: float | None = None,
        priority: int = 0,
    ) -> None:
        """Queue ``task`` for the next ``execute``; a repeated name replaces the earlier task.

        ``timeout_seconds`` applies when the task does not declare its own.
        Higher ``priority`` audits start first; ties keep the order they were added.
        """
        name = task.name
        if name in self._audits:
            self._logger.warning("audit_replaced", audit=name)
        self._audits[name] = _QueuedAudit(task, timeout_seconds, priority)

    async def execute(
        self,
        collect_exceptions: bool = False,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> dict[str, AuditOutcome]:
        queued = list(self._audits.values())
        self._audits = {}
        if not queued:
            self._results = {}
            return {}

        token = cancel_token or CancellationToken()
        started = sorted(queued, key=lambda item: item.priority, reverse=True)
        self._logger.info(
            "audit_execution_started",
            audits=[item.task.name for item in started],
            parallel=self._parallel,
            max_workers=self._max_workers,
        )

        threads = ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="warden-audit"
        )
        try:
            if self._parallel and len(started) > 1:
                pool: WorkerPool[AuditOutcome] = WorkerPool(
                    max_concurrency=min(self._max_workers, len(started)),
                    cancel_token=token,
                )
                outcomes = await pool.map_ordered(
                    self._run_audit(
                        item, threads, collect_exceptions=collect_exceptions, cancel_token=token
                    )
                    for item in started
                )
            else:
                outcomes = []
                for item in started:
                    outcomes.append(
                        await self._run_audit(
                            item,
                            threads,
                            collect_exceptions=collect_exceptions,
                            cancel_token=token,
                        )
                    )
        finally:
            threads.shutdown(wait=False, cancel_futures=True)

        by_name = {outcome.name: outcome for outcome in outcomes}
        self._results = {item.task.name: by_name[item.task.name] for item in queued}
        self._logger.info(
            "audit_execution_finished",
            total=len(outcomes),
            failed=self.failed_audits(),
        )
        return dict(self._results)

    def all_findings(self) -> list[Finding]:
        """Findings from the last execution, in audit order."""
        return [finding for outcome in self._results.values() for finding in outcome.findings]

    def has_failures(self) -> bool:
        return any(not outcome.success for outcome in self._results.values())

    def failed_audits(self) -> list[str]:
        return [name for name, outcome in self._results.items() if not outcome.success]

    async def _run_audit(
        self,
        item: _QueuedAudit,
        threads: ThreadPoolExecutor,
        *,
        collect_exceptions: bool,
        cancel_token: CancellationToken,
    ) -> AuditOutcome:
        task = item.task
        name = task.name
        timeout_seconds = self._timeout_for(task, item.timeout_seconds)
        start = time.perf_counter()

        try:
            raw = await run_with_timeout(
                call_maybe_async(task.run, threads), timeout_seconds, cancel_token
            )
            findings = _coerce_findings(task.findings())
        except TimeoutError:
            failure = AuditTimeoutError(name, timeout_seconds)
            self._logger.error("audit_timed_out", audit=name, timeout_seconds=timeout_seconds)
            return AuditOutcome(
                name=name,
                success=False,
                findings=(),
                status=AuditStatus.TIMEOUT,
                task=task,
                duration_ms=_duration_ms(start),
                error=str(failure),
                exception=failure if collect_exceptions else None,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "audit_failed",
                audit=name,
                error=f"{type(exc).__name__}: {exc}",
            )
            return AuditOutcome(
                name=name,
                success=False,
                findings=(),
                status=AuditStatus.ERROR,
                task=task,
                duration_ms=_duration_ms(start),
                error=f"{type(exc).__name__}: {exc}",
                exception=exc if collect_exceptions else None,
            )

        success = bool(raw)
        duration_ms = _duration_ms(start)
        self._logger.info(
            "audit_completed",
            audit=name,
            success=success,
            findings=len(findings),
            duration_ms=duration_ms,
        )
        return AuditOutcome(
            name=name,
            success=success,
            findings=findings,
            status=AuditStatus.PASSED if success else AuditStatus.FAILED,
            task=task,
            duration_ms=duration_ms,
        )

    def _timeout_for(self, task: AuditTask, fallback: float | None) -> float:
        for configured in (getattr(task, "timeout_seconds", None), fallback):
            if isinstance(configured, bool) or not isinstance(configured, (int, float)):
                continue
            if math.isfinite(configured) and configured > 0:
                return float(configured)
        return self._default_timeout


def _coerce_findings(items: Sequence[Finding | Mapping[str, object]]) -> tuple[Finding, ...]:
    coerced: list[Finding] = []
    for item in items:
        if isinstance(item, Finding):
            coerced.append(item)
        elif isinstance(item, Mapping):
            coerced.append(Finding.from_dict(item))
        else:
            raise TypeError(f"audit findings must be Finding objects, got {type(item).__name__}")
    return tuple(coerced)


def _duration_ms(start: float) -> int:
    elapsed_seconds = max(time.perf_counter() - start, 0.0)
    return int(round(elapsed_seconds * 1000))


__all__ = [
    "AuditOutcome",
    "AuditStatus",
    "AuditTask",
    "ParallelAuditExecutor",
]
