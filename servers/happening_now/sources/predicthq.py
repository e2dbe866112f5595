"""
PredictHQ Events API integration.

Secondary commercial source. Coordinates come back as [lng, lat] and the
popularity prior is the provider's own local rank.
"""

from typing import Any, Optional

import httpx
from dateutil import parser

from ..config.settings import PredictHQConfig
from ..geo import miles_to_km
from ..models import NormalizedEvent
from .base import HttpEventAdapter, end_of_day


DEFAULT_POPULARITY = 70

PREDICTHQ_CATEGORIES = {
    "concerts": "concerts",
    "sports": "sports",
    "festivals": "festivals",
    "performing-arts": "arts",
    "community": "other",
    "expos": "other",
    "conferences": "other",
}


class PredictHQAdapter(HttpEventAdapter):
    """Fetch events from the PredictHQ /events endpoint."""

    source = "predicthq"
    category_map = PREDICTHQ_CATEGORIES

    def __init__(self, config: PredictHQConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(config, client)

    def build_params(self, lat, lng, radius_miles, start_date, end_date) -> list[tuple[str, str]]:
        params = [
            ("within", f"{miles_to_km(radius_miles)}km@{lat},{lng}"),
            ("limit", str(self.config.page_size)),
            ("sort", "start"),
            ("category", ",".join(self.config.categories)),
        ]
        if start_date:
            params.append(("start.gte", start_date.isoformat()))
        if end_date:
            params.append(("start.lte", end_of_day(end_date).strftime("%Y-%m-%dT%H:%M:%S")))
        return params

    async def _fetch(self, lat, lng, radius_miles, start_date, end_date) -> list[NormalizedEvent]:
        data = await self._get_json(
            f"{self.config.base_url}/events/",
            params=self.build_params(lat, lng, radius_miles, start_date, end_date),
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Accept": "application/json",
            },
        )
        return self._parse_items(data.get("results") or [])

    def parse_item(self, item: dict[str, Any]) -> Optional[NormalizedEvent]:
        """Parse a PredictHQ event into our NormalizedEvent model."""
        geo = item.get("geo") or {}
        coords = item.get("location") or (geo.get("geometry") or {}).get("coordinates")
        address = geo.get("address") or {}
        venue = next(
            (entity for entity in item.get("entities") or [] if entity.get("type") == "venue"),
            {},
        )

        return NormalizedEvent(
            id=f"phq_{item['id']}",
            source="predicthq",
            source_id=item["id"],
            title=item["title"],
            description=item.get("description") or None,
            start_time=parser.isoparse(item["start"]),
            end_time=parser.isoparse(item["end"]) if item.get("end") else None,
            venue_name=venue.get("name"),
            address=address.get("formatted_address"),
            city=address.get("locality"),
            region=address.get("region"),
            country=address.get("country_code") or item.get("country"),
            lat=coords[1] if coords else None,
            lng=coords[0] if coords else None,
            category=self.map_category(item.get("category")),
            currency="USD",
            popularity=item.get("local_rank") or item.get("rank") or DEFAULT_POPULARITY,
            verified=True,
        )
