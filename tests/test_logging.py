"""Tests for goalpilot/infrastructure/observability/logging.py."""

import structlog

from goalpilot.infrastructure.observability.logging import add_service_context


class TestAddServiceContext:
    def test_copies_bound_context(self) -> None:
        with structlog.contextvars.bound_contextvars(service="goalpilot", run_id="abc123", objective="ship"):
            event = add_service_context(None, "info", {"event": "Goal added"})

        assert event["service"] == "goalpilot"
        assert event["run_id"] == "abc123"
        assert event["objective"] == "ship"
        assert "timestamp" in event

    def test_explicit_values_win(self) -> None:
        with structlog.contextvars.bound_contextvars(service="goalpilot"):
            event = add_service_context(None, "info", {"event": "x", "service": "worker", "timestamp": "t"})

        assert event["service"] == "worker"
        assert event["timestamp"] == "t"

    def test_no_run_outside_a_run(self) -> None:
        structlog.contextvars.clear_contextvars()
        event = add_service_context(None, "info", {"event": "x"})
        assert "run_id" not in event
