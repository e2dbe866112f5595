"""
Time-bucketed result cache in front of the aggregator.

get-or-fetch-and-store: an entry is served while ``now < expires_at`` and
replaced wholesale after a fresh aggregation pass otherwise. Store failures
never fail a request, the cache is only a performance optimization.
"""

import asyncio
import math
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from .aggregator import HappeningNowAggregator
from .models import (
    CacheEntry,
    HappeningNowRequest,
    NormalizedEvent,
    TimeFilter,
    count_by_source,
    ensure_utc,
)
from .resilience import with_default
from .storage.base import CacheStore

logger = structlog.get_logger()

TONIGHT_TTL = timedelta(minutes=5)
DEFAULT_TTL = timedelta(minutes=30)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def build_cache_key(request: HappeningNowRequest) -> str:
    """Deterministic key from (rounded lat, rounded lng, radius, time filter, category)."""
    return "_".join((
        str(_round_half_up(request.lat * 100)),
        str(_round_half_up(request.lng * 100)),
        f"{request.radius_miles:g}",
        request.time_filter,
        request.category or "all",
    ))


class CachedAggregator:
    """Serve aggregation results through a CacheStore."""

    def __init__(
        self,
        aggregator: HappeningNowAggregator,
        store: CacheStore,
        tonight_ttl: timedelta = TONIGHT_TTL,
        default_ttl: timedelta = DEFAULT_TTL,
        coalesce: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            aggregator: Aggregator run on a miss or an expired entry
            store: Backing cache store
            tonight_ttl: Lifetime of entries for the "tonight" filter
            default_ttl: Lifetime of entries for every other filter
            coalesce: Share one aggregation pass between concurrent misses on a key
            clock: Source of the current instant (defaults to the aggregator's)
        """
        self.aggregator = aggregator
        self.store = store
        self.tonight_ttl = tonight_ttl
        self.default_ttl = default_ttl
        self.coalesce = coalesce
        self.clock = clock or aggregator.clock
        self._inflight: dict[str, asyncio.Task] = {}

    def ttl_for(self, time_filter: TimeFilter) -> timedelta:
        return self.tonight_ttl if time_filter == "tonight" else self.default_ttl

    def build_entry(
        self,
        cache_key: str,
        request: HappeningNowRequest,
        events: list[NormalizedEvent],
        now: datetime,
    ) -> CacheEntry:
        now = ensure_utc(now)
        return CacheEntry(
            cache_key=cache_key,
            lat=request.lat,
            lng=request.lng,
            radius_miles=request.radius_miles,
            time_filter=request.time_filter,
            category=request.category,
            events=events,
            source_counts=count_by_source(events),
            total_count=len(events),
            created_at=now,
            expires_at=now + self.ttl_for(request.time_filter),
        )

    async def get_cached_or_fetch(self, request: HappeningNowRequest) -> list[NormalizedEvent]:
        """Cached events for ``request``, refreshing the entry when missing or stale."""
        cache_key = build_cache_key(request)

        entry = await with_default(self.store.get, None, cache_key)
        if entry is not None and entry.is_fresh(self.clock()):
            logger.info("cache_hit", cache_key=cache_key, count=entry.total_count)
            # The key excludes limit, so the stored page can be longer than asked for
            return entry.events[: request.limit]

        logger.info("cache_miss", cache_key=cache_key, expired=entry is not None)

        if self.coalesce:
            events = await self._refresh_coalesced(cache_key, request)
            return events[: request.limit]
        return await self._refresh(cache_key, request)

    async def _refresh(self, cache_key: str, request: HappeningNowRequest) -> list[NormalizedEvent]:
        result = await self.aggregator.aggregate(request)

        # Degraded results are stored too
        entry = self.build_entry(cache_key, request, result.events, self.clock())
        await with_default(self.store.upsert, None, entry)
        return result.events

    async def _refresh_coalesced(
        self, cache_key: str, request: HappeningNowRequest
    ) -> list[NormalizedEvent]:
        task = self._inflight.get(cache_key)
        if task is None:
            task = asyncio.ensure_future(self._refresh(cache_key, request))
            self._inflight[cache_key] = task
            task.add_done_callback(lambda done: self._forget(cache_key, done))
        else:
            logger.debug("cache_refresh_joined", cache_key=cache_key)
        return await asyncio.shield(task)

    def _forget(self, cache_key: str, task: asyncio.Task) -> None:
        if self._inflight.get(cache_key) is task:
            del self._inflight[cache_key]

    async def get_cached_or_fetch_events(
        self,
        lat: float,
        lng: float,
        radius_miles: float = 50,
        time_filter: TimeFilter = "all",
        category: Optional[str] = None,
        limit: int = 50,
    ) -> list[NormalizedEvent]:
        request = HappeningNowRequest(
            lat=lat,
            lng=lng,
            radius_miles=radius_miles,
            time_filter=time_filter,
            category=category,
            limit=limit,
        )
        return await self.get_cached_or_fetch(request)
