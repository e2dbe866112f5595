"""
Cross-provider deduplication for normalized events.

Two passes per incoming event:
- Hard match: identical canonical key (normalized title + 30-minute time
  bucket + ~100 m geo bucket), O(1) via the seen map
- Fuzzy match: start times within 30 minutes, venues within 0.1 miles and
  title similarity above 0.7, scanned against every stored entry

The fuzzy scan is O(n*m) in the worst case, fine for the tens to low
hundreds of events one query produces.
"""

import re
from datetime import datetime
from typing import Iterable, NamedTuple, Optional

from rapidfuzz import fuzz
import structlog

from .geo import haversine_miles
from .models import DedupeResult, DuplicateMatch, NormalizedEvent

logger = structlog.get_logger()


TIME_BUCKET_MINUTES = 30

FUZZY_TIME_WINDOW_SECONDS = 30 * 60
FUZZY_DISTANCE_MILES = 0.1
TITLE_SIMILARITY_THRESHOLD = 0.7
MIN_SHARED_WORDS = 2
MAX_EXTRA_WORDS = 1

UNKNOWN_GEO = "unknown"

# Fields a merged record inherits from the losing record when its own are empty
MERGE_FIELDS = ("image_url", "url", "price_min", "price_max", "description")

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


class FuzzyMatch(NamedTuple):
    title_similarity: float
    distance_miles: Optional[float]
    time_delta_minutes: float


def normalize_title(title: Optional[str]) -> str:
    """Lowercase, keep only [a-z0-9 ], collapse whitespace."""
    if not title:
        return ""
    text = _NON_ALNUM.sub("", title.lower())
    return _WHITESPACE.sub(" ", text).strip()


def time_bucket(start_time: datetime) -> str:
    """Floor a start time to its 30-minute slot, as an ISO instant."""
    minute = (start_time.minute // TIME_BUCKET_MINUTES) * TIME_BUCKET_MINUTES
    return start_time.replace(minute=minute, second=0, microsecond=0).isoformat()


def geo_bucket(lat: Optional[float], lng: Optional[float]) -> str:
    """Round coordinates to 3 decimals (~100 m grid)."""
    if lat is None or lng is None:
        return UNKNOWN_GEO
    return f"{lat:.3f},{lng:.3f}"


def canonical_key(event: NormalizedEvent) -> str:
    return "_".join((
        normalize_title(event.title),
        time_bucket(event.start_time),
        geo_bucket(event.lat, event.lng),
    ))


def title_similarity(title1: str, title2: str) -> float:
    """Jaccard overlap of the normalized title word sets (0-1)."""
    t1 = normalize_title(title1)
    t2 = normalize_title(title2)

    if t1 == t2:
        return 1.0

    words1 = set(t1.split())
    words2 = set(t2.split())
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def paraphrase_similarity(title1: str, title2: str) -> float:
    """
    Token-set ratio (0-1), catches a title that adds or drops a word.

    Only counts when the titles share at least two words and each side has
    at most one word the other lacks. "Set 1" and "Set 2" are different
    happenings, and so are "Jazz Night" and "Jazz Night Late Show".
    """
    t1 = normalize_title(title1)
    t2 = normalize_title(title2)
    words1 = set(t1.split())
    words2 = set(t2.split())
    if len(words1 & words2) < MIN_SHARED_WORDS:
        return 0.0
    if max(len(words1 - words2), len(words2 - words1)) > MAX_EXTRA_WORDS:
        return 0.0
    return fuzz.token_set_ratio(t1, t2) / 100


def match_fuzzy(event: NormalizedEvent, existing: NormalizedEvent) -> Optional[FuzzyMatch]:
    """
    Check whether two events with different canonical keys are the same happening.

    Events without coordinates only match other events without coordinates,
    in which case the distance check is skipped.
    """
    time_delta = abs((event.start_time - existing.start_time).total_seconds())
    if time_delta > FUZZY_TIME_WINDOW_SECONDS:
        return None

    distance: Optional[float] = None
    if event.has_coordinates and existing.has_coordinates:
        distance = haversine_miles(event.lat, event.lng, existing.lat, existing.lng)
        if distance > FUZZY_DISTANCE_MILES:
            return None
    elif event.has_coordinates or existing.has_coordinates:
        return None

    similarity = max(
        title_similarity(event.title, existing.title),
        paraphrase_similarity(event.title, existing.title),
    )
    if similarity <= TITLE_SIMILARITY_THRESHOLD:
        return None

    return FuzzyMatch(similarity, distance, time_delta / 60)


def _is_empty(value: object) -> bool:
    return value is None or value == ""


def merge_events(
    existing: NormalizedEvent, incoming: NormalizedEvent
) -> tuple[NormalizedEvent, NormalizedEvent]:
    """
    Merge two duplicates into a new record.

    The higher-popularity record wins; on a tie the existing (first-seen)
    record is kept. Empty merge fields on the winner are filled from the loser.

    Returns: (merged_event, losing_event)
    """
    if incoming.popularity > existing.popularity:
        winner, loser = incoming, existing
    else:
        winner, loser = existing, incoming

    updates = {
        name: getattr(loser, name)
        for name in MERGE_FIELDS
        if _is_empty(getattr(winner, name)) and not _is_empty(getattr(loser, name))
    }
    merged = winner.model_copy(update=updates) if updates else winner
    return merged, loser


def deduplicate(events: Iterable[NormalizedEvent]) -> DedupeResult:
    """
    Collapse events describing the same real-world happening.

    Args:
        events: Combined events from every adapter

    Returns:
        DedupeResult with surviving events (insertion order) and audit trail
    """
    seen: dict[str, NormalizedEvent] = {}
    audit_trail: list[DuplicateMatch] = []
    original_count = 0

    for event in events:
        original_count += 1
        key = canonical_key(event)

        existing = seen.get(key)
        if existing is not None:
            merged, loser = merge_events(existing, event)
            seen[key] = merged
            audit_trail.append(DuplicateMatch(
                kept_event_id=merged.id,
                merged_event_id=loser.id,
                match_type="hard",
                title_similarity=1.0,
                distance_miles=_distance(existing, event),
                time_delta_minutes=abs((event.start_time - existing.start_time).total_seconds()) / 60,
                reason=f"Merged '{loser.title}' ({loser.source}) into '{merged.title}' ({merged.source})",
            ))
            continue

        for existing_key, existing in seen.items():
            match = match_fuzzy(event, existing)
            if match is None:
                continue

            merged, loser = merge_events(existing, event)
            seen[existing_key] = merged
            audit_trail.append(DuplicateMatch(
                kept_event_id=merged.id,
                merged_event_id=loser.id,
                match_type="fuzzy",
                title_similarity=match.title_similarity,
                distance_miles=match.distance_miles,
                time_delta_minutes=match.time_delta_minutes,
                reason=f"Merged '{loser.title}' ({loser.source}) into '{merged.title}' ({merged.source})",
            ))
            break
        else:
            seen[key] = event

    result = DedupeResult(
        events=list(seen.values()),
        original_count=original_count,
        duplicates_removed=original_count - len(seen),
        audit_trail=audit_trail,
    )
    logger.debug(
        "dedup_complete",
        original=result.original_count,
        kept=len(result.events),
        removed=result.duplicates_removed,
    )
    return result


def deduplicate_events(events: Iterable[NormalizedEvent]) -> list[NormalizedEvent]:
    """Deduplicate and return only the surviving events."""
    return deduplicate(events).events


def _distance(e1: NormalizedEvent, e2: NormalizedEvent) -> Optional[float]:
    if e1.has_coordinates and e2.has_coordinates:
        return haversine_miles(e1.lat, e1.lng, e2.lat, e2.lng)
    return None


def format_audit_summary(result: DedupeResult) -> str:
    """Format audit trail as human-readable summary."""
    if not result.audit_trail:
        return "No duplicates found."

    lines = [
        "Deduplication Summary:",
        f"  Original events: {result.original_count}",
        f"  Duplicates removed: {result.duplicates_removed}",
        f"  Final events: {len(result.events)}",
        f"  Dedup rate: {result.dedup_rate:.1f}%",
        "",
        "Merged events:",
    ]

    for match in result.audit_trail:
        lines.append(
            f"  - [{match.match_type}] {match.reason} "
            f"(title similarity: {match.title_similarity:.0%})"
        )

    return "\n".join(lines)
