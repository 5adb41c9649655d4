from __future__ import annotations
from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt

"""
Geospatial helpers.

Range predicates and a great-circle distance. The in-memory store uses `haversine_m`
as its spherical distance; MongoDB computes its own on the server side.
"""

EARTH_RADIUS_M = 6_371_000

LAT_MIN, LAT_MAX = -90.0, 90.0
LON_MIN, LON_MAX = -180.0, 180.0


def is_valid_lat(value: float) -> bool:
    # NaN compares false on both sides, so it is never a valid latitude.
    return LAT_MIN <= value <= LAT_MAX


def is_valid_lon(value: float) -> bool:
    return LON_MIN <= value <= LON_MAX


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees (not range-checked)."""

    lat: float
    lon: float


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Compute great-circle distance in meters between two points."""
    lat1 = radians(a.lat)
    lon1 = radians(a.lon)
    lat2 = radians(b.lat)
    lon2 = radians(b.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * asin(min(1.0, sqrt(h)))
