"""
Community-submitted events.

Rows come from a queryable store filtered by a coordinate bounding box.
A table that has not been provisioned yet is an empty result, not an error.
"""

from datetime import date
from typing import Any, Callable, Optional

import structlog

from ..config.settings import CommunityConfig
from ..geo import bounding_box
from ..models import NormalizedEvent, utcnow
from ..storage.base import CommunityEventStore, TableNotProvisionedError
from .base import EventAdapter, end_of_day, start_of_day

logger = structlog.get_logger()


VERIFIED_POPULARITY = 80
UNVERIFIED_POPULARITY = 40

# Submissions already use the canonical vocabulary, plus a few common aliases
COMMUNITY_CATEGORIES = {
    "concerts": "concerts",
    "music": "concerts",
    "sports": "sports",
    "arts": "arts",
    "theatre": "arts",
    "festivals": "festivals",
    "festival": "festivals",
    "other": "other",
}


class CommunityAdapter(EventAdapter):
    """Fetch community events from a CommunityEventStore."""

    source = "community"
    category_map = COMMUNITY_CATEGORIES

    def __init__(
        self,
        config: CommunityConfig,
        store: Optional[CommunityEventStore],
        clock: Callable = utcnow,
    ):
        super().__init__(config)
        self.store = store
        self.clock = clock

    def skip_reason(self) -> Optional[str]:
        reason = super().skip_reason()
        if reason:
            return reason
        if self.store is None:
            return "community store not configured"
        return None

    async def _fetch(
        self,
        lat: float,
        lng: float,
        radius_miles: float,
        start_date: Optional[date],
        end_date: Optional[date],
    ) -> list[NormalizedEvent]:
        box = bounding_box(lat, lng, radius_miles)
        start = start_of_day(start_date) if start_date else self.clock()
        end = end_of_day(end_date) if end_date else None

        try:
            rows = await self.store.query_events(box, start, end, self.config.page_size)
        except TableNotProvisionedError as e:
            logger.info("community_table_missing", table=e.table)
            return []

        return self._parse_items(rows)

    def parse_item(self, row: dict[str, Any]) -> Optional[NormalizedEvent]:
        """Map one community_events row into our NormalizedEvent model."""
        verified = bool(row.get("verified"))

        return NormalizedEvent(
            id=str(row["id"]),
            source="community",
            source_id=str(row.get("source_id") or row["id"]),
            title=row["title"],
            description=row.get("description"),
            start_time=row["start_time"],
            end_time=row.get("end_time"),
            venue_name=row.get("venue_name"),
            address=row.get("address"),
            city=row.get("city"),
            region=row.get("region") or row.get("state"),
            country=row.get("country"),
            lat=row.get("lat"),
            lng=row.get("lng"),
            category=self.map_category(row.get("category")),
            image_url=row.get("image_url"),
            url=row.get("url"),
            price_min=row.get("price_min"),
            price_max=row.get("price_max"),
            currency=row.get("currency") or "USD",
            popularity=VERIFIED_POPULARITY if verified else UNVERIFIED_POPULARITY,
            verified=verified,
        )
