"""
Domain models.

Pydantic types are the stable "contract" between layers (store documents -> engine ->
API/CLI output):
- `GeoPoint`: canonical, range-checked point
- `UserLocationRecord`: the user view the core works with
- `ProximityResult`: one search hit (record + distance)

The `LocationField` variants describe what is *actually* stored under a user's location
key, which historically is not always a valid GeoJSON point. The normalizer and origin
resolution dispatch on these variants instead of on raw store type tags.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

from nearby.core.geo import is_valid_lat, is_valid_lon


class GeoPoint(BaseModel):
    """A canonical geographic point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    def to_geojson(self) -> dict[str, Any]:
        # GeoJSON (and the 2dsphere index) is longitude-first.
        return {"type": "Point", "coordinates": [self.lon, self.lat]}


class SortMode(str, Enum):
    DISTANCE_ASC = "distance_asc"
    DISTANCE_DESC = "distance_desc"
    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"


@dataclass(frozen=True)
class MissingLocation:
    pass


@dataclass(frozen=True)
class RawTextLocation:
    """Legacy free-text "lat,lon" value."""

    text: str


@dataclass(frozen=True)
class GeoPointLocation:
    """A stored GeoJSON point; coordinates are not guaranteed to be in range."""

    lat: float
    lon: float

    @property
    def in_range(self) -> bool:
        return is_valid_lat(self.lat) and is_valid_lon(self.lon)


@dataclass(frozen=True)
class MalformedLocation:
    """An object or other value that is not a two-number GeoJSON point."""

    value: Any


LocationField = Union[MissingLocation, RawTextLocation, GeoPointLocation, MalformedLocation]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def read_location_field(document: Mapping[str, Any], field: str = "location") -> LocationField:
    """Classify the raw value stored under `field`."""
    value = document.get(field)
    if value is None:
        return MissingLocation()
    if isinstance(value, str):
        return RawTextLocation(value)
    if isinstance(value, Mapping):
        coords = value.get("coordinates")
        if isinstance(coords, (list, tuple)) and len(coords) == 2 and all(_is_number(c) for c in coords):
            return GeoPointLocation(lat=float(coords[1]), lon=float(coords[0]))
    return MalformedLocation(value)


class UserLocationRecord(BaseModel):
    """A stored user as seen by the proximity core."""

    id: str
    username: str = ""
    email: str = ""
    location: GeoPoint | None = None
    can_receive_messages: bool = True
    is_hidden: bool = False

    @classmethod
    def from_document(cls, document: Mapping[str, Any], *, location_field: str = "location") -> "UserLocationRecord":
        loc = read_location_field(document, location_field)
        point = GeoPoint(lat=loc.lat, lon=loc.lon) if isinstance(loc, GeoPointLocation) and loc.in_range else None
        return cls(
            id=str(document["_id"]),
            username=str(document.get("username") or ""),
            email=str(document.get("email") or ""),
            location=point,
            can_receive_messages=bool(document.get("canReceiveMessages", True)),
            is_hidden=bool(document.get("isHidden", False)),
        )


class ProximityResult(BaseModel):
    """One search hit: a user and its distance from the query origin."""

    user: UserLocationRecord
    distance_km: float = Field(..., ge=0)


@dataclass
class MigrationReport:
    """Counters emitted after a full normalizer run."""

    fixed: int = 0
    removed: int = 0
    already_ok: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "fixed": int(self.fixed),
            "removed": int(self.removed),
            "already_ok": int(self.already_ok),
            "failed": int(self.failed),
        }


@dataclass(frozen=True)
class IndexMaintenanceResult:
    removed: int
    index_created: bool

    def as_dict(self) -> dict[str, Any]:
        return {"removed": int(self.removed), "index_created": bool(self.index_created)}
