"""Health tracking for event providers."""

from datetime import datetime, timezone
from typing import Any

import structlog

from ..models import FetchStats

logger = structlog.get_logger()


class HealthMonitor:
    """Track the outcome of every provider fetch.

    A skipped fetch (missing credentials, open circuit, table not yet
    provisioned) leaves the provider's failure streak untouched.
    """

    def __init__(self):
        self.status: dict[str, dict[str, Any]] = {}

    def record(self, stats: FetchStats) -> None:
        """Record the outcome of one adapter fetch."""
        if stats.status == "success":
            self.record_success(stats.source, stats.count, stats.duration_ms)
        elif stats.status == "error":
            self.record_failure(stats.source, stats.error_message or "unknown error")
        else:
            self.record_skip(stats.source, stats.error_message or "skipped")

    def record_success(self, source: str, event_count: int, duration_ms: int | None = None) -> None:
        self.status[source] = {
            "healthy": True,
            "last_check": _now_iso(),
            "event_count": event_count,
            "duration_ms": duration_ms,
            "consecutive_failures": 0,
            "last_error": None,
        }
        logger.debug("source_healthy", source=source, event_count=event_count)

    def record_failure(self, source: str, error: str) -> None:
        consecutive = self.status.get(source, {}).get("consecutive_failures", 0) + 1

        self.status[source] = {
            "healthy": False,
            "last_check": _now_iso(),
            "event_count": 0,
            "duration_ms": None,
            "consecutive_failures": consecutive,
            "last_error": error,
        }
        logger.warning(
            "source_unhealthy",
            source=source,
            consecutive_failures=consecutive,
            error=error,
        )

    def record_skip(self, source: str, reason: str) -> None:
        current = self.status.get(source, {})
        self.status[source] = {
            "healthy": current.get("healthy", True),
            "last_check": _now_iso(),
            "event_count": 0,
            "duration_ms": None,
            "consecutive_failures": current.get("consecutive_failures", 0),
            "last_error": current.get("last_error"),
            "skipped": reason,
        }

    def is_healthy(self, source: str) -> bool:
        """Unknown sources count as healthy."""
        return self.status.get(source, {}).get("healthy", True)

    def get_source_status(self, source: str) -> dict[str, Any] | None:
        return self.status.get(source)

    def get_status(self) -> dict[str, Any]:
        healthy_count = sum(1 for s in self.status.values() if s.get("healthy", False))
        total_count = len(self.status)

        return {
            "timestamp": _now_iso(),
            "summary": {
                "healthy": healthy_count,
                "unhealthy": total_count - healthy_count,
                "total": total_count,
            },
            "sources": self.status,
        }

    def get_unhealthy_sources(self) -> list[str]:
        return [name for name, status in self.status.items() if not status.get("healthy", True)]

    def reset(self, source: str | None = None) -> None:
        """Reset one source, or every source when ``source`` is None."""
        if source:
            self.status.pop(source, None)
        else:
            self.status.clear()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
