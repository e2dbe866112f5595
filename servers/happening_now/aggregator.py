"""
Happening-now aggregation pass.

fan out to every adapter concurrently -> merge -> category filter ->
deduplicate -> rank -> slice to the requested limit.
"""

import asyncio
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence

import structlog

from .dedup import deduplicate
from .models import (
    AggregationResult,
    HappeningNowRequest,
    NormalizedEvent,
    TimeFilter,
    ensure_utc,
    utcnow,
)
from .ranking import rank_events
from .resilience import HealthMonitor
from .sources.base import EventAdapter

logger = structlog.get_logger()

PRIMARY_SOURCE = "ticketmaster"


def compute_date_range(time_filter: TimeFilter, now: datetime) -> tuple[date, date]:
    """
    Query window for a time filter, as UTC calendar dates (inclusive).

    - tonight: today only
    - weekend: today through the coming Sunday (a week ahead when today is Sunday)
    - week: today + 7 days
    - all: today + 30 days
    """
    today = ensure_utc(now).date()

    if time_filter == "tonight":
        return today, today
    if time_filter == "weekend":
        # weekday(): Monday=0 .. Sunday=6
        days_until_sunday = 6 - today.weekday() or 7
        return today, today + timedelta(days=days_until_sunday)
    if time_filter == "week":
        return today, today + timedelta(days=7)
    return today, today + timedelta(days=30)


class HappeningNowAggregator:
    """Aggregate events from every provider for one geographic query."""

    def __init__(
        self,
        adapters: Sequence[EventAdapter],
        health: Optional[HealthMonitor] = None,
        clock: Callable[[], datetime] = utcnow,
        coverage_fill_threshold: int = 10,
    ):
        """
        Args:
            adapters: Provider adapters queried on every pass
            health: Monitor recording each adapter outcome
            clock: Source of the current instant, injectable for tests
            coverage_fill_threshold: Primary-source count below which the
                coverage-fill signal is logged
        """
        self.adapters = list(adapters)
        self.health = health or HealthMonitor()
        self.clock = clock
        self.coverage_fill_threshold = coverage_fill_threshold

    async def aggregate(self, request: HappeningNowRequest) -> AggregationResult:
        """Run one full aggregation pass. Never raises for provider failures."""
        now = ensure_utc(self.clock())
        start_date, end_date = compute_date_range(request.time_filter, now)

        logger.info(
            "aggregation_started",
            lat=request.lat,
            lng=request.lng,
            radius_miles=request.radius_miles,
            time_filter=request.time_filter,
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )

        results = await asyncio.gather(*(
            adapter.fetch_with_stats(request.lat, request.lng, request.radius_miles, start_date, end_date)
            for adapter in self.adapters
        ))

        all_events: list[NormalizedEvent] = []
        stats = []
        failed_sources = []
        for events, fetch_stats in results:
            all_events.extend(events)
            stats.append(fetch_stats)
            self.health.record(fetch_stats)
            if fetch_stats.status == "error":
                failed_sources.append(fetch_stats.source)

        logger.info(
            "providers_fetched",
            counts={s.source: s.count for s in stats},
            failed=failed_sources,
        )

        raw_count = len(all_events)
        if request.category_filter:
            all_events = [e for e in all_events if e.category == request.category_filter]

        deduped = deduplicate(all_events)
        logger.info(
            "events_deduplicated",
            before=deduped.original_count,
            after=len(deduped.events),
        )

        ranked = rank_events(deduped.events, request.lat, request.lng, now=now)
        self._log_coverage(ranked)

        return AggregationResult(
            events=ranked[: request.limit],
            stats=stats,
            raw_count=raw_count,
            total=len(ranked),
            failed_sources=failed_sources,
        )

    def _log_coverage(self, ranked: list[NormalizedEvent]) -> None:
        """Telemetry only, no corrective fetch follows."""
        primary_count = sum(1 for e in ranked if e.source == PRIMARY_SOURCE)
        if primary_count < self.coverage_fill_threshold and len(ranked) < self.coverage_fill_threshold:
            logger.info(
                "coverage_fill",
                primary_source=PRIMARY_SOURCE,
                primary_count=primary_count,
                total=len(ranked),
                threshold=self.coverage_fill_threshold,
            )

    async def get_happening_now_events(
        self,
        lat: float,
        lng: float,
        radius_miles: float = 50,
        time_filter: TimeFilter = "all",
        category: Optional[str] = None,
        limit: int = 50,
    ) -> list[NormalizedEvent]:
        """Ranked, deduplicated, limited events around a point."""
        request = HappeningNowRequest(
            lat=lat,
            lng=lng,
            radius_miles=radius_miles,
            time_filter=time_filter,
            category=category,
            limit=limit,
        )
        result = await self.aggregate(request)
        return result.events
