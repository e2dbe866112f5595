"""
Event provider adapters.

Each adapter implements:
- fetch(lat, lng, radius_miles, start_date, end_date) -> list[NormalizedEvent]
- Its own category table, popularity prior, timeout and circuit breaker
"""

from .base import EventAdapter, HttpEventAdapter
from .community import CommunityAdapter
from .predicthq import PredictHQAdapter
from .ticketmaster import TicketmasterAdapter

__all__ = [
    "EventAdapter",
    "HttpEventAdapter",
    "CommunityAdapter",
    "PredictHQAdapter",
    "TicketmasterAdapter",
]
