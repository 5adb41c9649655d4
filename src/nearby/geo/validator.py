"""
Coordinate validation and repair.

Turns a pair of numeric candidates (or a legacy "a,b" string) into a canonical
`GeoPoint`, or raises a `LocationInputError` subclass when no ordering is in range.

Classification order:
1. `(a, b)` read as `(lat, lon)`.
2. `(a, b)` read as `(lon, lat)`, i.e. the pair was stored swapped.

When both orderings are valid the first one wins, so "10,20" is always lat=10, lon=20.
"""

from __future__ import annotations

from nearby.core.errors import MalformedLocationError, OutOfRangeLocationError
from nearby.core.geo import is_valid_lat, is_valid_lon
from nearby.domain.models import GeoPoint, GeoPointLocation


def classify(a: float, b: float) -> GeoPoint:
    """Return the canonical point for the candidate pair `(a, b)`."""
    if is_valid_lat(a) and is_valid_lon(b):
        return GeoPoint(lat=a, lon=b)
    if is_valid_lon(a) and is_valid_lat(b):
        return GeoPoint(lat=b, lon=a)
    raise OutOfRangeLocationError(f"No valid lat/lon ordering for ({a}, {b})")


def split_location_text(text: str | None) -> tuple[float, float]:
    """Parse "a,b" into two floats; exactly two numeric tokens are accepted."""
    if text is None or not text.strip():
        raise MalformedLocationError("Location text is empty")
    parts = text.split(",")
    if len(parts) != 2:
        raise MalformedLocationError(f"Expected 'lat,lon', got {len(parts)} token(s): {text!r}")
    try:
        return float(parts[0].strip()), float(parts[1].strip())
    except ValueError as e:
        raise MalformedLocationError(f"Non-numeric location token in {text!r}") from e


def parse_location_text(text: str | None) -> GeoPoint:
    """Parse and classify a legacy free-text location."""
    a, b = split_location_text(text)
    return classify(a, b)


def coerce_location_text(text: str | None) -> GeoPoint | None:
    """Like `parse_location_text`, but unrecoverable input yields None."""
    try:
        return parse_location_text(text)
    except (MalformedLocationError, OutOfRangeLocationError):
        return None


def repair_stored_point(stored: GeoPointLocation) -> GeoPoint:
    """Validate a stored point, trying a single lat/lon swap if it is out of range."""
    # Stored (lat, lon) fed through classify: rule 1 keeps it, rule 2 is exactly the swap test.
    return classify(stored.lat, stored.lon)
