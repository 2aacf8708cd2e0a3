"""
Time-windowed audit result cache.

An entry is fresh iff ``now - stored_at < duration``; freshness is the only
validity signal. Storage is delegated to a backend implementing
``get/set/delete/clear`` so the same cache logic runs over memory or SQLite.
"""

from __future__ import annotations

import hashlib
import json
import sqlite3
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog

from warden_orchestrator.constants import CACHE_KEY_PREFIX, DEFAULT_CACHE_DURATION_SECONDS
from warden_orchestrator.domain.findings import Finding
from warden_orchestrator.errors import CacheBackendError

CachePayload = Mapping[str, Any]


@runtime_checkable
class CacheBackend(Protocol):
    def get(self, key: str) -> CachePayload | None: ...

    def set(self, key: str, payload: CachePayload) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self, prefix: str) -> None: ...


class InMemoryCacheBackend:
    """Process-local backend guarded by a lock."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> CachePayload | None:
        with self._lock:
            raw = self._entries.get(key)
        return None if raw is None else _decode(key, raw)

    def set(self, key: str, payload: CachePayload) -> None:
        encoded = _encode(payload)
        with self._lock:
            self._entries[key] = encoded

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self, prefix: str) -> None:
        with self._lock:
            for key in [item for item in self._entries if item.startswith(prefix)]:
                del self._entries[key]


class SqliteCacheBackend:
    """Single-table SQLite backend; payloads are stored as JSON text."""

    _SCHEMA = (
        "CREATE TABLE IF NOT EXISTS audit_cache ("
        " cache_key TEXT PRIMARY KEY,"
        " payload TEXT NOT NULL"
        ")"
    )

    def __init__(self, path: str | Path, *, busy_timeout_ms: int = 5000) -> None:
        self._path = Path(path)
        self._busy_timeout_ms = busy_timeout_ms
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.execute(self._SCHEMA)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> CachePayload | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT payload FROM audit_cache WHERE cache_key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        return _decode(key, row[0])

    def set(self, key: str, payload: CachePayload) -> None:
        encoded = _encode(payload)
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO audit_cache (cache_key, payload) VALUES (?, ?) "
                "ON CONFLICT(cache_key) DO UPDATE SET payload = excluded.payload",
                (key, encoded),
            )

    def delete(self, key: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM audit_cache WHERE cache_key = ?", (key,))

    def clear(self, prefix: str) -> None:
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        with self._connection() as conn:
            conn.execute(
                "DELETE FROM audit_cache WHERE cache_key LIKE ? ESCAPE '\\'", (escaped + "%",)
            )

    def _connection(self) -> _LockedConnection:
        return _LockedConnection(self._path, self._busy_timeout_ms, self._lock)


class _LockedConnection:
    """Context manager: lock, open, commit or roll back, close."""

    __slots__ = ("_path", "_timeout", "_lock", "_conn")

    def __init__(self, path: Path, busy_timeout_ms: int, lock: threading.Lock) -> None:
        self._path = path
        self._timeout = busy_timeout_ms / 1000.0
        self._lock = lock
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> sqlite3.Connection:
        self._lock.acquire()
        try:
            self._conn = sqlite3.connect(self._path, timeout=self._timeout)
        except sqlite3.Error as exc:
            self._lock.release()
            raise CacheBackendError(f"unable to open cache database {self._path}: {exc}") from exc
        return self._conn

    def __exit__(self, exc_type: object, exc: object, traceback: object) -> None:
        conn = self._conn
        self._conn = None
        try:
            if conn is not None:
                if exc_type is None:
                    conn.commit()
                else:
                    conn.rollback()
                conn.close()
        except sqlite3.Error as error:
            raise CacheBackendError(f"cache database error in {self._path}: {error}") from error
        finally:
            self._lock.release()
        if isinstance(exc, sqlite3.Error):
            raise CacheBackendError(f"cache database error in {self._path}: {exc}") from exc


@dataclass(frozen=True, slots=True)
class CacheEntry:
    audit_name: str
    result: tuple[Mapping[str, object], ...]
    stored_at: float

    @property
    def stored_at_iso(self) -> str:
        return datetime.fromtimestamp(self.stored_at, UTC).isoformat().replace("+00:00", "Z")

    def findings(self) -> tuple[Finding, ...]:
        return tuple(Finding.from_dict(item) for item in self.result)


class AuditCache:
    """Freshness-window cache keyed by audit name."""

    def __init__(
        self,
        backend: CacheBackend | None = None,
        *,
        duration_seconds: float = DEFAULT_CACHE_DURATION_SECONDS,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
        logger: Any | None = None,
    ) -> None:
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be > 0")
        self._backend = backend if backend is not None else InMemoryCacheBackend()
        self._duration = float(duration_seconds)
        self._enabled = enabled
        self._clock = clock
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def duration_seconds(self) -> float:
        return self._duration

    @property
    def enabled(self) -> bool:
        return self._enabled

    def store(self, audit_name: str, result: Sequence[Finding | Mapping[str, object]]) -> None:
        """Overwrite any prior entry for ``audit_name``, stamped with the current time."""
        if not self._enabled:
            return
        payload = {
            "audit_name": audit_name,
            "result": [_finding_payload(item) for item in result],
            "stored_at": self._clock(),
        }
        self._backend.set(cache_key(audit_name), payload)
        self._logger.debug("audit_cache_stored", audit=audit_name, findings=len(result))

    def get(self, audit_name: str) -> CacheEntry | None:
        """Return the stored entry regardless of freshness."""
        payload = self._backend.get(cache_key(audit_name))
        if payload is None:
            return None
        return _entry_from_payload(audit_name, payload)

    def has_recent(self, audit_name: str) -> bool:
        if not self._enabled:
            return False
        entry = self.get(audit_name)
        if entry is None:
            return False
        return self._clock() - entry.stored_at < self._duration

    def time_until_next(self, audit_name: str) -> float | None:
        """Seconds until the entry goes stale, clamped to ``[0, duration]``."""
        entry = self.get(audit_name)
        if entry is None:
            return None
        remaining = self._duration - (self._clock() - entry.stored_at)
        return min(max(remaining, 0.0), self._duration)

    def clear(self, audit_name: str | None = None) -> None:
        if audit_name is None:
            self._backend.clear(CACHE_KEY_PREFIX)
            self._logger.info("audit_cache_cleared")
        else:
            self._backend.delete(cache_key(audit_name))
            self._logger.info("audit_cache_cleared", audit=audit_name)


def cache_key(audit_name: str) -> str:
    return CACHE_KEY_PREFIX + hashlib.md5(audit_name.encode("utf-8")).hexdigest()  # noqa: S324


def _finding_payload(item: Finding | Mapping[str, object]) -> dict[str, object]:
    if isinstance(item, Finding):
        return item.to_dict()
    return dict(item)


def _entry_from_payload(audit_name: str, payload: CachePayload) -> CacheEntry:
    stored_at = payload.get("stored_at")
    result = payload.get("result")
    if isinstance(stored_at, bool) or not isinstance(stored_at, (int, float)):
        raise CacheBackendError(f"cache entry for {audit_name!r} has no valid timestamp")
    if not isinstance(result, list) or not all(isinstance(item, Mapping) for item in result):
        raise CacheBackendError(f"cache entry for {audit_name!r} has a malformed result")
    return CacheEntry(audit_name=audit_name, result=tuple(result), stored_at=float(stored_at))


def _encode(payload: CachePayload) -> str:
    try:
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise CacheBackendError(f"cache payload is not JSON-serializable: {exc}") from exc


def _decode(key: str, raw: str) -> CachePayload:
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CacheBackendError(f"corrupted cache payload for {key}: {exc}") from exc
    if not isinstance(decoded, dict):
        raise CacheBackendError(f"corrupted cache payload for {key}: expected object")
    return decoded


__all__ = [
    "AuditCache",
    "CacheBackend",
    "CacheEntry",
    "InMemoryCacheBackend",
    "SqliteCacheBackend",
    "cache_key",
]
