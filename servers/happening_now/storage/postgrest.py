"""
PostgREST-backed stores for the managed backend.

The backend exposes each table at ``{url}/rest/v1/{table}`` and
authenticates with the project key in both the ``apikey`` and
``Authorization`` headers.
"""

from datetime import datetime
from typing import Any, Optional

import httpx
import structlog

from ..geo import BoundingBox
from ..models import CacheEntry, NormalizedEvent
from .base import StoreError, TableNotProvisionedError

logger = structlog.get_logger()

# PostgREST "relation not in schema cache" and Postgres "undefined table"
MISSING_TABLE_CODES = {"PGRST205", "42P01"}


class PostgrestClient:
    """Minimal async PostgREST client over httpx."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.client = client
        self.timeout = timeout

    def _headers(self, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def select(self, table: str, params: list[tuple[str, str]]) -> list[dict[str, Any]]:
        response = await self._request("GET", table, params=params)
        return response.json()

    async def upsert(self, table: str, row: dict[str, Any], on_conflict: str) -> None:
        await self._request(
            "POST",
            table,
            params=[("on_conflict", on_conflict)],
            json=row,
            headers={
                "Content-Type": "application/json",
                "Prefer": "resolution=merge-duplicates,return=minimal",
            },
        )

    async def _request(
        self,
        method: str,
        table: str,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            if self.client is not None:
                response = await self.client.request(
                    method, url, headers=self._headers(headers), timeout=self.timeout, **kwargs
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, headers=self._headers(headers), **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"{table}: request failed: {e}") from e

        if response.is_error:
            raise _store_error(table, response)
        return response


def _store_error(table: str, response: httpx.Response) -> StoreError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    code = body.get("code")
    message = body.get("message") or response.text
    if code in MISSING_TABLE_CODES or "does not exist" in (message or ""):
        return TableNotProvisionedError(table)
    return StoreError(f"{table}: HTTP {response.status_code}: {message}")


class PostgrestCacheStore:
    """Cache entries in the ``happening_now_cache`` table, upserted on cache_key."""

    def __init__(self, client: PostgrestClient, table: str = "happening_now_cache"):
        self.client = client
        self.table = table

    async def get(self, cache_key: str) -> Optional[CacheEntry]:
        rows = await self.client.select(self.table, [
            ("select", "*"),
            ("cache_key", f"eq.{cache_key}"),
            ("limit", "1"),
        ])
        if not rows:
            return None
        return _row_to_entry(rows[0])

    async def upsert(self, entry: CacheEntry) -> None:
        await self.client.upsert(self.table, _entry_to_row(entry), on_conflict="cache_key")


def _entry_to_row(entry: CacheEntry) -> dict[str, Any]:
    row = {
        "cache_key": entry.cache_key,
        "geo_lat": entry.lat,
        "geo_lng": entry.lng,
        "radius_miles": entry.radius_miles,
        "time_filter": entry.time_filter,
        "category_filter": entry.category,
        "events": [event.model_dump(mode="json") for event in entry.events],
        "total_count": entry.total_count,
        "created_at": entry.created_at.isoformat(),
        "expires_at": entry.expires_at.isoformat(),
    }
    for source, count in entry.source_counts.items():
        row[f"{source}_count"] = count
    return row


def _row_to_entry(row: dict[str, Any]) -> CacheEntry:
    source_counts = {
        column[: -len("_count")]: value
        for column, value in row.items()
        if column.endswith("_count") and column != "total_count" and value is not None
    }
    return CacheEntry(
        cache_key=row["cache_key"],
        lat=row["geo_lat"],
        lng=row["geo_lng"],
        radius_miles=row["radius_miles"],
        time_filter=row["time_filter"],
        category=row.get("category_filter"),
        events=[NormalizedEvent.model_validate(event) for event in row.get("events") or []],
        source_counts=source_counts,
        total_count=row.get("total_count") or 0,
        created_at=row.get("created_at") or row["expires_at"],
        expires_at=row["expires_at"],
    )


class PostgrestCommunityStore:
    """Community-submitted events in the ``community_events`` table."""

    def __init__(self, client: PostgrestClient, table: str = "community_events"):
        self.client = client
        self.table = table

    async def query_events(
        self,
        box: BoundingBox,
        start: datetime,
        end: Optional[datetime],
        limit: int,
    ) -> list[dict[str, Any]]:
        params = [
            ("select", "*"),
            ("lat", f"gte.{box.min_lat}"),
            ("lat", f"lte.{box.max_lat}"),
            ("lng", f"gte.{box.min_lng}"),
            ("lng", f"lte.{box.max_lng}"),
            ("start_time", f"gte.{start.isoformat()}"),
        ]
        if end is not None:
            params.append(("start_time", f"lte.{end.isoformat()}"))
        params.extend([("order", "start_time.asc"), ("limit", str(limit))])

        return await self.client.select(self.table, params)
