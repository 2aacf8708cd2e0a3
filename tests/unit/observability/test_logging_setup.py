"""Unit tests for structlog configuration and run-scoped fields."""

from __future__ import annotations

import asyncio
import io
import json
from collections.abc import Iterator

import pytest
import structlog

from warden_orchestrator.config.settings import ObservabilitySettings
from warden_orchestrator.observability.logging import (
    configure_logging,
    get_correlation_context,
    reset_logging,
    run_scope,
)


@pytest.fixture(autouse=True)
def _restore_structlog() -> Iterator[None]:
    yield
    reset_logging()


def _lines(stream: io.StringIO) -> list[dict[str, object]]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


def test_json_format_renders_event_and_fields() -> None:
    stream = io.StringIO()
    configure_logging(ObservabilitySettings(log_level="INFO", log_format="json"), stream=stream)

    structlog.get_logger("warden.test").info("audit_completed", audit="npm", findings=2)

    [record] = _lines(stream)
    assert record["event"] == "audit_completed"
    assert record["audit"] == "npm"
    assert record["findings"] == 2
    assert record["level"] == "info"
    assert str(record["timestamp"]).endswith("Z")


def test_level_filters_lower_events() -> None:
    stream = io.StringIO()
    configure_logging(ObservabilitySettings(log_level="WARNING", log_format="json"), stream=stream)
    logger = structlog.get_logger("warden.test")

    logger.info("dependency_resolved", dependency="command-git")
    logger.warning("dependency_unresolved", dependency="command-npm")

    assert [record["event"] for record in _lines(stream)] == ["dependency_unresolved"]


def test_text_format_is_plain() -> None:
    stream = io.StringIO()
    configure_logging(ObservabilitySettings(log_level="DEBUG", log_format="text"), stream=stream)

    structlog.get_logger("warden.test").debug("audit_cache_stored", audit="npm")

    output = stream.getvalue()
    assert "audit_cache_stored" in output
    assert "audit=npm" in output
    assert "\x1b[" not in output


@pytest.mark.parametrize(
    "settings",
    [
        ObservabilitySettings(log_level="TRACE", log_format="json"),
        ObservabilitySettings(log_level="INFO", log_format="xml"),
    ],
)
def test_unsupported_settings_are_rejected(settings: ObservabilitySettings) -> None:
    with pytest.raises(ValueError, match="unsupported log"):
        configure_logging(settings)


def test_run_scope_binds_fields_and_drops_none() -> None:
    stream = io.StringIO()
    configure_logging(stream=stream)

    with run_scope(run_id="abc123", plugin=None):
        assert get_correlation_context() == {"run_id": "abc123"}
        structlog.get_logger("warden.test").info("audit_run_started")
    structlog.get_logger("warden.test").info("audit_run_finished")

    started, finished = _lines(stream)
    assert started["run_id"] == "abc123"
    assert "run_id" not in finished
    assert get_correlation_context() == {}


@pytest.mark.asyncio
async def test_run_scope_reaches_worker_threads() -> None:
    stream = io.StringIO()
    configure_logging(stream=stream)

    def work() -> None:
        structlog.get_logger("warden.test").info("audit_completed")

    with run_scope(run_id="threaded"):
        await asyncio.to_thread(work)

    [record] = _lines(stream)
    assert record["run_id"] == "threaded"
