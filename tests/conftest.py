"""Shared fixtures for warden-orchestrator tests."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest


@dataclass(slots=True)
class RecordingLogger:
    """Stand-in for a structlog bound logger that keeps every event."""

    events: list[tuple[str, str, dict[str, object]]] = field(default_factory=list)

    def debug(self, event: str, **kwargs: object) -> None:
        self.events.append(("debug", event, kwargs))

    def info(self, event: str, **kwargs: object) -> None:
        self.events.append(("info", event, kwargs))

    def warning(self, event: str, **kwargs: object) -> None:
        self.events.append(("warning", event, kwargs))

    def error(self, event: str, **kwargs: object) -> None:
        self.events.append(("error", event, kwargs))

    def named(self, event: str) -> list[tuple[str, dict[str, object]]]:
        return [(level, fields) for level, name, fields in self.events if name == event]

    def levels(self, event: str) -> list[str]:
        return [level for level, _ in self.named(event)]


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()
