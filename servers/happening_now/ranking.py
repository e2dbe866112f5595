"""
Relevance ranking for deduplicated events.

Additive score, never exposed in the output:
- Base: the event's popularity prior
- Source: +100 ticketmaster, +70 predicthq, +80 verified community, +40 otherwise
- Time: +50 in progress, +40 within 6h, +30 within 24h, +20 within 72h
- Distance: +30 under 5 mi, +20 under 10 mi, +10 under 25 mi
"""

from datetime import datetime
from typing import Iterable, Optional

from .geo import haversine_miles
from .models import NormalizedEvent, ensure_utc, utcnow


SOURCE_BONUS = {
    "ticketmaster": 100,
    "predicthq": 70,
}
VERIFIED_COMMUNITY_BONUS = 80
UNVERIFIED_COMMUNITY_BONUS = 40

IN_PROGRESS_BONUS = 50

# (upper bound in hours, bonus), checked in order
TIME_BONUSES = (
    (6, 40),
    (24, 30),
    (72, 20),
)

# (upper bound in miles, bonus), checked in order
DISTANCE_BONUSES = (
    (5, 30),
    (10, 20),
    (25, 10),
)


def source_bonus(event: NormalizedEvent) -> int:
    if event.source in SOURCE_BONUS:
        return SOURCE_BONUS[event.source]
    return VERIFIED_COMMUNITY_BONUS if event.verified else UNVERIFIED_COMMUNITY_BONUS


def time_bonus(event: NormalizedEvent, now: datetime) -> int:
    hours_until = (event.start_time - now).total_seconds() / 3600

    if hours_until < 0:
        if event.end_time is not None and event.end_time <= now:
            return 0
        return IN_PROGRESS_BONUS

    for max_hours, bonus in TIME_BONUSES:
        if hours_until < max_hours:
            return bonus
    return 0


def distance_bonus(distance_miles: Optional[float]) -> int:
    if distance_miles is None:
        return 0
    for max_miles, bonus in DISTANCE_BONUSES:
        if distance_miles < max_miles:
            return bonus
    return 0


def query_distance(
    event: NormalizedEvent, query_lat: Optional[float], query_lng: Optional[float]
) -> Optional[float]:
    """Distance from the query point, or None when either side lacks coordinates."""
    if query_lat is None or query_lng is None or not event.has_coordinates:
        return None
    return haversine_miles(query_lat, query_lng, event.lat, event.lng)


def score_event(
    event: NormalizedEvent,
    now: datetime,
    distance_miles: Optional[float] = None,
) -> int:
    return (
        event.popularity
        + source_bonus(event)
        + time_bonus(event, now)
        + distance_bonus(distance_miles)
    )


def rank_events(
    events: Iterable[NormalizedEvent],
    query_lat: Optional[float] = None,
    query_lng: Optional[float] = None,
    now: Optional[datetime] = None,
) -> list[NormalizedEvent]:
    """
    Order events by descending relevance score.

    Ties keep their input order. Each returned record carries its
    distance_from_query when it could be computed.

    Args:
        events: Deduplicated events
        query_lat: Latitude of the query point
        query_lng: Longitude of the query point
        now: Reference instant (defaults to the current time)

    Returns:
        New list of events, most relevant first
    """
    now = ensure_utc(now) if now is not None else utcnow()

    scored: list[tuple[int, NormalizedEvent]] = []
    for event in events:
        distance = query_distance(event, query_lat, query_lng)
        if distance is not None:
            event = event.model_copy(update={"distance_from_query": distance})
        scored.append((score_event(event, now, distance), event))

    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [event for _, event in scored]
