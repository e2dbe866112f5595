"""Tests for provider health monitoring."""

import pytest

from servers.happening_now.models import FetchStats
from servers.happening_now.resilience.health import HealthMonitor


class TestHealthMonitor:
    """Tests for HealthMonitor class."""

    @pytest.fixture
    def monitor(self) -> HealthMonitor:
        return HealthMonitor()

    def test_record_success(self, monitor: HealthMonitor):
        monitor.record_success("ticketmaster", event_count=25, duration_ms=120)

        status = monitor.get_source_status("ticketmaster")
        assert status["healthy"] is True
        assert status["event_count"] == 25
        assert status["duration_ms"] == 120
        assert status["consecutive_failures"] == 0

    def test_record_failure(self, monitor: HealthMonitor):
        monitor.record_failure("predicthq", error="HTTP 429")

        status = monitor.get_source_status("predicthq")
        assert status["healthy"] is False
        assert status["last_error"] == "HTTP 429"
        assert status["consecutive_failures"] == 1

    def test_consecutive_failures_increment(self, monitor: HealthMonitor):
        for i in range(3):
            monitor.record_failure("ticketmaster", error=f"Error {i}")

        assert monitor.get_source_status("ticketmaster")["consecutive_failures"] == 3

    def test_success_resets_failures(self, monitor: HealthMonitor):
        monitor.record_failure("ticketmaster", error="Error")
        monitor.record_failure("ticketmaster", error="Error")
        monitor.record_success("ticketmaster", event_count=10)

        status = monitor.get_source_status("ticketmaster")
        assert status["consecutive_failures"] == 0
        assert status["healthy"] is True

    def test_skip_keeps_failure_streak(self, monitor: HealthMonitor):
        """An open circuit skip neither heals nor worsens the provider."""
        monitor.record_failure("predicthq", error="timed out after 5.0s")
        monitor.record_skip("predicthq", reason="Circuit breaker 'predicthq' is open")

        status = monitor.get_source_status("predicthq")
        assert status["healthy"] is False
        assert status["consecutive_failures"] == 1
        assert status["last_error"] == "timed out after 5.0s"
        assert status["skipped"] == "Circuit breaker 'predicthq' is open"

    def test_skip_of_unknown_source_is_healthy(self, monitor: HealthMonitor):
        monitor.record_skip("community", reason="community store not configured")
        assert monitor.is_healthy("community") is True

    @pytest.mark.parametrize(
        "stats,healthy",
        [
            (FetchStats(source="ticketmaster", count=3, status="success", duration_ms=5), True),
            (FetchStats(source="ticketmaster", count=0, status="error", error_message="HTTP 500"), False),
            (FetchStats(source="ticketmaster", count=0, status="skipped", error_message="disabled"), True),
        ],
    )
    def test_record_dispatches_on_status(self, monitor: HealthMonitor, stats, healthy):
        monitor.record(stats)
        assert monitor.is_healthy("ticketmaster") is healthy

    def test_is_healthy_unknown_source(self, monitor: HealthMonitor):
        assert monitor.is_healthy("unknown_source") is True

    def test_get_unhealthy_sources(self, monitor: HealthMonitor):
        monitor.record_success("ticketmaster", event_count=20)
        monitor.record_failure("predicthq", error="Error")
        monitor.record_failure("community", error="Timeout")

        unhealthy = monitor.get_unhealthy_sources()
        assert sorted(unhealthy) == ["community", "predicthq"]

    def test_get_status_summary(self, monitor: HealthMonitor):
        monitor.record_success("ticketmaster", event_count=20)
        monitor.record_failure("predicthq", error="Error")

        status = monitor.get_status()

        assert "T" in status["timestamp"]
        assert status["summary"] == {"healthy": 1, "unhealthy": 1, "total": 2}
        assert set(status["sources"]) == {"ticketmaster", "predicthq"}

    def test_reset_specific_source(self, monitor: HealthMonitor):
        monitor.record_success("ticketmaster", event_count=20)
        monitor.record_failure("predicthq", error="Error")

        monitor.reset("predicthq")

        assert monitor.get_source_status("predicthq") is None
        assert monitor.get_source_status("ticketmaster") is not None

    def test_reset_all_sources(self, monitor: HealthMonitor):
        monitor.record_success("ticketmaster", event_count=20)
        monitor.record_failure("predicthq", error="Error")

        monitor.reset()

        assert monitor.status == {}
