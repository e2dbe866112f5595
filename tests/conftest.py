"""Shared pytest fixtures for happening-now tests."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import pytest
from structlog.testing import capture_logs

from servers.happening_now.config.settings import ProviderConfig
from servers.happening_now.models import NormalizedEvent
from servers.happening_now.sources.base import EventAdapter

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeAdapter(EventAdapter):
    """Adapter returning canned events, raising, or stalling on demand."""

    def __init__(
        self,
        source: str,
        events: Optional[list[NormalizedEvent]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        timeout: float = 1.0,
    ):
        self.source = source
        super().__init__(ProviderConfig(timeout=timeout))
        self.events = events or []
        self.error = error
        self.delay = delay
        self.calls: list[tuple] = []

    async def _fetch(self, lat, lng, radius_miles, start_date, end_date):
        self.calls.append((lat, lng, radius_miles, start_date, end_date))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.events)

    def parse_item(self, item: Any) -> Optional[NormalizedEvent]:
        return item


@pytest.fixture(autouse=True)
def log_output():
    """Capture structlog events instead of printing them."""
    with capture_logs() as logs:
        yield logs


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant: 2025-03-01 12:00 UTC (a Saturday)."""
    return FIXED_NOW


@pytest.fixture
def clock(now: datetime) -> Callable[[], datetime]:
    return lambda: now


@pytest.fixture
def make_event() -> Callable[..., NormalizedEvent]:
    """Factory for events with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides: Any) -> NormalizedEvent:
        counter["n"] += 1
        source = overrides.get("source", "ticketmaster")
        prefix = {"ticketmaster": "tm_", "predicthq": "phq_"}.get(source, "")
        fields: dict[str, Any] = {
            "id": f"{prefix}{counter['n']}",
            "source": source,
            "source_id": str(counter["n"]),
            "title": f"Event {counter['n']}",
            "start_time": FIXED_NOW + timedelta(days=1),
            "lat": 25.781,
            "lng": -80.188,
            "category": "concerts",
            "popularity": 0,
        }
        fields.update(overrides)
        return NormalizedEvent(**fields)

    return _make


@pytest.fixture
def heat_lakers_tm(make_event) -> NormalizedEvent:
    """Ticketmaster listing of the Heat game."""
    return make_event(
        id="tm_heat",
        source="ticketmaster",
        source_id="heat",
        title="Miami Heat vs Lakers",
        start_time=datetime(2025, 3, 1, 19, 0, tzinfo=timezone.utc),
        lat=25.781,
        lng=-80.188,
        category="sports",
        url="https://www.ticketmaster.com/heat-lakers",
        popularity=100,
        verified=True,
    )


@pytest.fixture
def heat_lakers_phq(make_event) -> NormalizedEvent:
    """PredictHQ listing of the same Heat game, paraphrased."""
    return make_event(
        id="phq_heat",
        source="predicthq",
        source_id="heat",
        title="Heat vs. Lakers Game",
        description="NBA regular season game at Kaseya Center",
        start_time=datetime(2025, 3, 1, 19, 5, tzinfo=timezone.utc),
        lat=25.7812,
        lng=-80.1881,
        category="sports",
        popularity=70,
        verified=True,
    )


@pytest.fixture
def fake_adapter() -> Callable[..., FakeAdapter]:
    return FakeAdapter
