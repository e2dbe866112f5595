"""Geospatial helpers shared by adapters, deduplication and ranking."""

import math
from typing import NamedTuple


EARTH_RADIUS_MILES = 3959
KM_PER_MILE = 1.60934

# Approximate, adequate for metropolitan-scale radii
DEGREES_PER_MILE = 0.0145


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def miles_to_km(miles: float) -> int:
    """Convert miles to whole kilometers, rounding half up."""
    return math.floor(miles * KM_PER_MILE + 0.5)


def bounding_box(lat: float, lng: float, radius_miles: float) -> BoundingBox:
    """Square coordinate window of +/- radius around a center point."""
    size = radius_miles * DEGREES_PER_MILE
    return BoundingBox(
        min_lat=lat - size,
        max_lat=lat + size,
        min_lng=lng - size,
        max_lng=lng + size,
    )
