"""
Wiring from Settings to a ready aggregator.

Usage:
    from servers.happening_now.factory import build_cached_aggregator

    service = build_cached_aggregator(load_settings())
    events = await service.get_cached_or_fetch_events(25.78, -80.19, time_filter="tonight")
"""

from datetime import timedelta
from typing import Optional

import httpx

from .aggregator import HappeningNowAggregator
from .cache import CachedAggregator
from .config.settings import Settings
from .models import utcnow
from .resilience import HealthMonitor
from .sources import CommunityAdapter, EventAdapter, PredictHQAdapter, TicketmasterAdapter
from .storage import (
    CacheStore,
    CommunityEventStore,
    InMemoryCacheStore,
    PostgrestCacheStore,
    PostgrestClient,
    PostgrestCommunityStore,
)


def build_community_store(
    settings: Settings, client: Optional[httpx.AsyncClient] = None
) -> Optional[CommunityEventStore]:
    """PostgREST community store, or None when the backend is not configured."""
    config = settings.community
    if not config.url or not config.api_key:
        return None
    return PostgrestCommunityStore(
        PostgrestClient(config.url, config.api_key, client=client, timeout=config.timeout),
        table=config.table,
    )


def build_cache_store(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> CacheStore:
    """PostgREST cache store when the backend is configured, in-memory otherwise."""
    config = settings.cache
    if not config.url or not config.api_key:
        return InMemoryCacheStore()
    return PostgrestCacheStore(
        PostgrestClient(config.url, config.api_key, client=client, timeout=config.timeout),
        table=config.table,
    )


def build_adapters(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    community_store: Optional[CommunityEventStore] = None,
) -> list[EventAdapter]:
    if community_store is None:
        community_store = build_community_store(settings, client)
    return [
        TicketmasterAdapter(settings.ticketmaster, client),
        PredictHQAdapter(settings.predicthq, client),
        CommunityAdapter(settings.community, community_store),
    ]


def build_aggregator(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    community_store: Optional[CommunityEventStore] = None,
    health: Optional[HealthMonitor] = None,
    clock=utcnow,
) -> HappeningNowAggregator:
    """
    Create an aggregator over every configured provider.

    Args:
        settings: Service settings
        client: Shared HTTP client (one is opened per call when omitted)
        community_store: Overrides the store built from settings
        health: Shared health monitor
        clock: Source of the current instant
    """
    return HappeningNowAggregator(
        build_adapters(settings, client, community_store),
        health=health,
        clock=clock,
        coverage_fill_threshold=settings.coverage_fill_threshold,
    )


def build_cached_aggregator(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    community_store: Optional[CommunityEventStore] = None,
    cache_store: Optional[CacheStore] = None,
    health: Optional[HealthMonitor] = None,
    clock=utcnow,
) -> CachedAggregator:
    """Create a cached aggregator; same arguments as build_aggregator plus the cache store."""
    aggregator = build_aggregator(settings, client, community_store, health, clock)
    return CachedAggregator(
        aggregator,
        cache_store or build_cache_store(settings, client),
        tonight_ttl=timedelta(minutes=settings.cache.tonight_ttl_minutes),
        default_ttl=timedelta(minutes=settings.cache.default_ttl_minutes),
        coalesce=settings.cache.coalesce,
    )
