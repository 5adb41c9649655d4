from __future__ import annotations

# Proximity search: "who is within N km of this point / of me".
#
# Pipeline for a user-centred search:
#   resolve origin -> store geo_near (meters) -> km -> min/max bounds -> sort -> drop self
#
# `find_within_radius` does not exclude anyone; it is also used for searches from an
# arbitrary point (map pick, IP/place lookup).

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from pydantic import ValidationError

from nearby.core.errors import InvalidSearchInputError, NoUsableOriginError
from nearby.domain.models import GeoPoint, ProximityResult, SortMode, UserLocationRecord
from nearby.store.base import UserStore
from nearby.users.service import UserService

logger = logging.getLogger(__name__)


def find_within_radius(
    store: UserStore,
    origin_lat: float,
    origin_lon: float,
    radius_km: float,
    *,
    location_field: str = "location",
) -> list[ProximityResult]:
    """Return every stored user within `radius_km` of the origin, nearest first."""
    try:
        origin = GeoPoint(lat=origin_lat, lon=origin_lon)
    except ValidationError as e:
        raise NoUsableOriginError(
            f"Search origin ({origin_lat}, {origin_lon}) is not a valid location", reason="out_of_range"
        ) from e
    if not radius_km > 0:
        raise InvalidSearchInputError("Radius must be greater than 0 km.")

    results: list[ProximityResult] = []
    for doc, distance_m in store.geo_near(origin.to_geojson(), radius_km * 1000, field=location_field):
        user = UserLocationRecord.from_document(doc, location_field=location_field)
        results.append(ProximityResult(user=user, distance_km=distance_m / 1000.0))
    logger.debug("geo_near lat=%.5f lon=%.5f r=%.2fkm -> %d hit(s)", origin.lat, origin.lon, radius_km, len(results))
    return results


def parse_optional_km(value: Any) -> float | None:
    """Parse a min/max bound; blank or unparseable input means "no bound"."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_radius_km(value: Any, *, max_radius_km: float | None = None) -> float:
    """Parse a search radius, raising `InvalidSearchInputError` with a user-facing message."""
    try:
        radius = float(str(value).strip())
    except ValueError as e:
        raise InvalidSearchInputError("Invalid radius. Please enter a number.") from e
    if not radius > 0:
        raise InvalidSearchInputError("Radius must be greater than 0 km.")
    if max_radius_km is not None and radius > max_radius_km:
        raise InvalidSearchInputError(f"Radius must be at most {max_radius_km:g} km.")
    return radius


def filter_by_distance(
    results: Iterable[ProximityResult], *, min_km: float | None = None, max_km: float | None = None
) -> list[ProximityResult]:
    return [
        r
        for r in results
        if (min_km is None or r.distance_km >= min_km) and (max_km is None or r.distance_km <= max_km)
    ]


def _name_key(result: ProximityResult) -> str:
    return result.user.username.casefold()


def sort_results(results: Iterable[ProximityResult], mode: SortMode = SortMode.DISTANCE_ASC) -> list[ProximityResult]:
    # sorted() is stable, including with reverse=True.
    if mode == SortMode.DISTANCE_DESC:
        return sorted(results, key=lambda r: r.distance_km, reverse=True)
    if mode == SortMode.NAME_ASC:
        return sorted(results, key=_name_key)
    if mode == SortMode.NAME_DESC:
        return sorted(results, key=_name_key, reverse=True)
    return sorted(results, key=lambda r: r.distance_km)


def exclude_user(results: Iterable[ProximityResult], user_id: str | None) -> list[ProximityResult]:
    if user_id is None:
        return list(results)
    return [r for r in results if r.user.id != str(user_id)]


@dataclass(frozen=True)
class NearbyQuery:
    """Parameters of one nearby search (radius is already validated)."""

    radius_km: float
    min_km: float | None = None
    max_km: float | None = None
    sort: SortMode = SortMode.DISTANCE_ASC

    @classmethod
    def from_raw(
        cls,
        radius_km: Any,
        *,
        min_km: Any = None,
        max_km: Any = None,
        sort: SortMode | str | None = None,
        max_radius_km: float | None = None,
    ) -> "NearbyQuery":
        """Build a query from form-style text input."""
        try:
            mode = SortMode(sort) if sort else SortMode.DISTANCE_ASC
        except ValueError as e:
            choices = ", ".join(m.value for m in SortMode)
            raise InvalidSearchInputError(f"Unknown sort mode {sort!r}; expected one of: {choices}") from e
        return cls(
            radius_km=parse_radius_km(radius_km, max_radius_km=max_radius_km),
            min_km=parse_optional_km(min_km),
            max_km=parse_optional_km(max_km),
            sort=mode,
        )


def refine(results: Iterable[ProximityResult], query: NearbyQuery, *, viewer_id: str | None) -> list[ProximityResult]:
    """Apply bounds, ordering and self-exclusion (in that order)."""
    kept = filter_by_distance(results, min_km=query.min_km, max_km=query.max_km)
    return exclude_user(sort_results(kept, query.sort), viewer_id)


def search_from_point(
    store: UserStore,
    origin: GeoPoint,
    query: NearbyQuery,
    *,
    viewer_id: str | None = None,
    location_field: str = "location",
) -> list[ProximityResult]:
    results = find_within_radius(store, origin.lat, origin.lon, query.radius_km, location_field=location_field)
    return refine(results, query, viewer_id=viewer_id)


def search_nearby(
    store: UserStore, user_id: str, query: NearbyQuery, *, location_field: str = "location"
) -> list[ProximityResult]:
    """Search around a user's own stored location, excluding that user.

    Raises:
        UserNotFoundError: unknown `user_id`.
        NoUsableOriginError: the user has no usable stored location.
    """
    origin = UserService(store, location_field=location_field).origin_for(user_id)
    return search_from_point(store, origin, query, viewer_id=str(user_id), location_field=location_field)
