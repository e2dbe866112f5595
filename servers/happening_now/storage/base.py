"""Store contracts consumed by the cache layer and the community adapter."""

from datetime import datetime
from typing import Any, Optional, Protocol

from ..geo import BoundingBox
from ..models import CacheEntry


class StoreError(Exception):
    """Raised when a backing store cannot be read or written."""


class TableNotProvisionedError(StoreError):
    """Raised when the backing table has not been created yet."""

    def __init__(self, table: str):
        super().__init__(f"Table '{table}' does not exist")
        self.table = table


class CacheStore(Protocol):
    """Get-by-key / upsert-by-key storage for cache entries.

    Expiry is checked by the caller, stores never evict.
    """

    async def get(self, cache_key: str) -> Optional[CacheEntry]:
        ...

    async def upsert(self, entry: CacheEntry) -> None:
        ...


class CommunityEventStore(Protocol):
    """Queryable storage of community-submitted event rows."""

    async def query_events(
        self,
        box: BoundingBox,
        start: datetime,
        end: Optional[datetime],
        limit: int,
    ) -> list[dict[str, Any]]:
        """Rows inside ``box`` starting in [start, end], earliest first."""
        ...
