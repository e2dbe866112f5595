"""In-process stores for tests and local runs."""

from datetime import datetime
from typing import Any, Iterable, Optional

from dateutil import parser

from ..geo import BoundingBox
from ..models import CacheEntry, ensure_utc
from .base import TableNotProvisionedError


class InMemoryCacheStore:
    """Dict-backed cache store, last writer wins."""

    def __init__(self):
        self.entries: dict[str, CacheEntry] = {}

    async def get(self, cache_key: str) -> Optional[CacheEntry]:
        return self.entries.get(cache_key)

    async def upsert(self, entry: CacheEntry) -> None:
        self.entries[entry.cache_key] = entry


class InMemoryCommunityStore:
    """List-backed community event table.

    Args:
        rows: Raw rows shaped like the community_events table
        provisioned: When False every query raises TableNotProvisionedError
    """

    table = "community_events"

    def __init__(self, rows: Iterable[dict[str, Any]] = (), provisioned: bool = True):
        self.rows = list(rows)
        self.provisioned = provisioned

    async def query_events(
        self,
        box: BoundingBox,
        start: datetime,
        end: Optional[datetime],
        limit: int,
    ) -> list[dict[str, Any]]:
        if not self.provisioned:
            raise TableNotProvisionedError(self.table)

        start = ensure_utc(start)
        end = ensure_utc(end) if end is not None else None

        matches = []
        for row in self.rows:
            lat, lng = row.get("lat"), row.get("lng")
            if lat is None or lng is None:
                continue
            if not (box.min_lat <= lat <= box.max_lat and box.min_lng <= lng <= box.max_lng):
                continue
            row_start = _parse_time(row.get("start_time"))
            if row_start is None or row_start < start:
                continue
            if end is not None and row_start > end:
                continue
            matches.append((row_start, row))

        matches.sort(key=lambda pair: pair[0])
        return [row for _, row in matches[:limit]]


def _parse_time(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not value:
        return None
    return ensure_utc(parser.isoparse(value))
