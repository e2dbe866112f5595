"""
Shared adapter contract.

Every adapter maps one provider into NormalizedEvent records and is
fail-soft: transport errors, error statuses, malformed payloads, timeouts
and open circuits all come back as an empty result plus a logged warning.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import date, datetime, time as dt_time, timezone
from typing import Any, Optional

import httpx
import structlog

from ..config.settings import ProviderConfig
from ..models import FetchStats, NormalizedEvent
from ..resilience import CircuitBreaker, CircuitBreakerOpenError, retry_with_backoff

logger = structlog.get_logger()


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, dt_time.min, tzinfo=timezone.utc)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, dt_time(23, 59, 59), tzinfo=timezone.utc)


class EventAdapter(ABC):
    """Base class for provider adapters."""

    source: str = ""

    # Provider category -> canonical category, unmapped values become "other"
    category_map: dict[str, str] = {}

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.breaker = CircuitBreaker(
            failure_threshold=config.failure_threshold,
            recovery_timeout=config.recovery_timeout,
            name=self.source,
        )

    def map_category(self, value: Optional[str]) -> str:
        return self.category_map.get(value or "", "other")

    def skip_reason(self) -> Optional[str]:
        """Reason this adapter cannot run at all, or None."""
        if not self.config.enabled:
            return "disabled"
        return None

    async def fetch(
        self,
        lat: float,
        lng: float,
        radius_miles: float,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[NormalizedEvent]:
        """Fetch normalized events around a point. Never raises."""
        events, _ = await self.fetch_with_stats(lat, lng, radius_miles, start_date, end_date)
        return events

    async def fetch_with_stats(
        self,
        lat: float,
        lng: float,
        radius_miles: float,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> tuple[list[NormalizedEvent], FetchStats]:
        """
        Fetch normalized events and report how the fetch went.

        Returns:
            Tuple of (events, fetch_stats)
        """
        reason = self.skip_reason()
        if reason:
            logger.info("provider_skipped", source=self.source, reason=reason)
            return [], FetchStats(source=self.source, count=0, status="skipped", error_message=reason)

        async def bounded() -> list[NormalizedEvent]:
            return await asyncio.wait_for(
                self._fetch(lat, lng, radius_miles, start_date, end_date),
                timeout=self.config.timeout,
            )

        started = time.perf_counter()
        try:
            events = await self.breaker.call(bounded())
        except CircuitBreakerOpenError as e:
            logger.info("provider_skipped", source=self.source, reason=str(e))
            return [], FetchStats(source=self.source, count=0, status="skipped", error_message=str(e))
        except asyncio.TimeoutError:
            message = f"timed out after {self.config.timeout}s"
            logger.warning("provider_fetch_failed", source=self.source, error=message)
            return [], FetchStats(source=self.source, count=0, status="error", error_message=message)
        except httpx.HTTPStatusError as e:
            message = f"HTTP {e.response.status_code}"
            logger.warning("provider_fetch_failed", source=self.source, error=message)
            return [], FetchStats(source=self.source, count=0, status="error", error_message=message)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning("provider_fetch_failed", source=self.source, error=message)
            return [], FetchStats(source=self.source, count=0, status="error", error_message=message)

        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.debug("provider_fetched", source=self.source, count=len(events), duration_ms=duration_ms)
        return events, FetchStats(
            source=self.source,
            count=len(events),
            status="success",
            duration_ms=duration_ms,
        )

    @abstractmethod
    async def _fetch(
        self,
        lat: float,
        lng: float,
        radius_miles: float,
        start_date: Optional[date],
        end_date: Optional[date],
    ) -> list[NormalizedEvent]:
        """Provider-specific fetch. May raise, the caller converts errors."""

    def _parse_items(self, items: list[Any]) -> list[NormalizedEvent]:
        """Map raw items, skipping the ones that cannot be normalized."""
        events = []
        for item in items:
            try:
                event = self.parse_item(item)
            except (AttributeError, IndexError, KeyError, TypeError, ValueError, OverflowError) as e:
                logger.debug("provider_item_skipped", source=self.source, error=str(e))
                continue
            if event is not None:
                events.append(event)
        return events

    @abstractmethod
    def parse_item(self, item: Any) -> Optional[NormalizedEvent]:
        """Map one raw provider record, or None to drop it."""


class HttpEventAdapter(EventAdapter):
    """Adapter backed by an authenticated HTTP API."""

    def __init__(self, config: ProviderConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(config)
        self.client = client

    def skip_reason(self) -> Optional[str]:
        reason = super().skip_reason()
        if reason:
            return reason
        if not getattr(self.config, "api_key", None):
            return "api key not configured"
        return None

    @retry_with_backoff(retryable_exceptions=(httpx.TransportError,))
    async def _get_json(
        self,
        url: str,
        params: list[tuple[str, str]],
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        if self.client is not None:
            response = await self.client.get(url, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                response = await client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()
