"""
Pydantic models for the happening-now aggregation pipeline.

These models define the core data types used throughout the service:
- NormalizedEvent: One real-world event, as produced by every provider adapter
- HappeningNowRequest: A validated aggregation query
- DedupeResult: Result of deduplication with audit trail
- FetchStats / AggregationResult: Observability data for one aggregation pass
- CacheEntry: A memoized, ranked result set
"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


EventSource = Literal["ticketmaster", "predicthq", "community"]
TimeFilter = Literal["tonight", "weekend", "week", "all"]

SOURCES: tuple[str, ...] = ("ticketmaster", "predicthq", "community")

# Canonical category vocabulary shared by every adapter
CATEGORIES = {
    "concerts": "Concerts & Music",
    "sports": "Sports",
    "arts": "Arts & Theatre",
    "festivals": "Festivals",
    "other": "Other",
}

DEFAULT_CATEGORY = "other"


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NormalizedEvent(BaseModel):
    """Represents a single event in the canonical aggregator shape."""

    model_config = ConfigDict(frozen=True)

    # Source tracking
    id: str = Field(min_length=1)  # tm_*, phq_* or the community row id
    source: EventSource
    source_id: str

    # Core event info
    title: str
    description: Optional[str] = None

    # Timing
    start_time: datetime
    end_time: Optional[datetime] = None

    # Location
    venue_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    # Classification
    category: str = DEFAULT_CATEGORY

    # Details
    image_url: Optional[str] = None
    url: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    currency: Optional[str] = None

    # Ranking priors
    popularity: int = 0
    verified: bool = False

    # Set by the ranker, never persisted by adapters
    distance_from_query: Optional[float] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        return ensure_utc(value)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: object) -> str:
        if isinstance(value, str) and value in CATEGORIES:
            return value
        return DEFAULT_CATEGORY

    @field_validator("popularity", mode="before")
    @classmethod
    def _default_popularity(cls, value: object) -> object:
        return 0 if value is None else value

    @field_validator("verified", mode="before")
    @classmethod
    def _default_verified(cls, value: object) -> object:
        return False if value is None else value

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


class HappeningNowRequest(BaseModel):
    """A validated happening-now query."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    radius_miles: float = Field(default=50, gt=0)
    time_filter: TimeFilter = "all"
    category: Optional[str] = None
    limit: int = Field(default=50, ge=0)

    @property
    def category_filter(self) -> Optional[str]:
        """Category to filter on, or None when every category is wanted."""
        if not self.category or self.category == "all":
            return None
        return self.category


class DuplicateMatch(BaseModel):
    """Records a duplicate match for audit trail."""

    kept_event_id: str
    merged_event_id: str
    match_type: Literal["hard", "fuzzy"]
    title_similarity: float
    distance_miles: Optional[float] = None
    time_delta_minutes: float
    reason: str


class DedupeResult(BaseModel):
    """Result of deduplication with audit trail."""

    events: list[NormalizedEvent]
    original_count: int
    duplicates_removed: int
    audit_trail: list[DuplicateMatch] = Field(default_factory=list)

    @computed_field
    @property
    def dedup_rate(self) -> float:
        """Percentage of events that were duplicates."""
        if self.original_count == 0:
            return 0.0
        return self.duplicates_removed / self.original_count * 100


class FetchStats(BaseModel):
    """Statistics from a single adapter fetch."""

    source: str
    count: int
    status: Literal["success", "error", "skipped"]
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None


class AggregationResult(BaseModel):
    """Result of one full aggregation pass over every adapter."""

    events: list[NormalizedEvent]
    stats: list[FetchStats]
    raw_count: int
    total: int
    failed_sources: list[str] = Field(default_factory=list)


def count_by_source(events: list[NormalizedEvent]) -> dict[str, int]:
    """Count events per source, including sources with no events."""
    counts = {source: 0 for source in SOURCES}
    for event in events:
        counts[event.source] = counts.get(event.source, 0) + 1
    return counts


class CacheEntry(BaseModel):
    """A memoized aggregation result, replaced wholesale on expiry."""

    cache_key: str
    lat: float
    lng: float
    radius_miles: float
    time_filter: TimeFilter
    category: Optional[str] = None
    events: list[NormalizedEvent]
    source_counts: dict[str, int] = Field(default_factory=dict)
    total_count: int = 0
    created_at: datetime
    expires_at: datetime

    @field_validator("created_at", "expires_at")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def is_fresh(self, now: datetime) -> bool:
        """An entry is valid strictly before its expiry instant."""
        return ensure_utc(now) < self.expires_at
