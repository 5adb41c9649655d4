import math

import pytest

from nearby.core.errors import InvalidSearchInputError, NoUsableOriginError, UserNotFoundError
from nearby.domain.models import ProximityResult, SortMode, UserLocationRecord
from nearby.proximity.engine import (
    NearbyQuery,
    filter_by_distance,
    find_within_radius,
    parse_optional_km,
    parse_radius_km,
    search_nearby,
    sort_results,
)
from nearby.store.memory import InMemoryUserStore

ORIGIN_LAT, ORIGIN_LON = 23.81, 90.41


def _north_of_origin(km: float) -> dict:
    # Due north along the meridian: the great-circle distance is R * dlat exactly.
    lat = ORIGIN_LAT + math.degrees(km / 6371.0)
    return {"type": "Point", "coordinates": [ORIGIN_LON, lat]}


def _dhaka_store() -> InMemoryUserStore:
    store = InMemoryUserStore(
        [
            {"_id": "me", "username": "me", "location": _north_of_origin(0)},
            {"_id": "far", "username": "Zed", "location": _north_of_origin(15)},
            {"_id": "edge", "username": "bob", "location": _north_of_origin(9.9)},
            {"_id": "close", "username": "Alice", "location": _north_of_origin(0.5)},
            {"_id": "nowhere", "username": "nobody"},
        ]
    )
    store.create_geo_index("location")
    return store


def _result(name: str, km: float) -> ProximityResult:
    return ProximityResult(user=UserLocationRecord(id=name, username=name), distance_km=km)


def test_find_within_radius_returns_nearest_first_in_km_without_self_exclusion():
    results = find_within_radius(_dhaka_store(), ORIGIN_LAT, ORIGIN_LON, 10)

    assert [r.user.id for r in results] == ["me", "close", "edge"]
    assert [r.distance_km for r in results] == pytest.approx([0.0, 0.5, 9.9], abs=1e-6)


def test_find_within_radius_rejects_invalid_origin_and_radius():
    store = _dhaka_store()
    with pytest.raises(NoUsableOriginError):
        find_within_radius(store, 123, 90, 10)
    with pytest.raises(InvalidSearchInputError):
        find_within_radius(store, ORIGIN_LAT, ORIGIN_LON, 0)


def test_search_nearby_end_to_end_excludes_self():
    results = search_nearby(_dhaka_store(), "me", NearbyQuery(radius_km=10))

    assert [r.user.id for r in results] == ["close", "edge"]
    assert [r.distance_km for r in results] == pytest.approx([0.5, 9.9], abs=1e-6)


def test_search_nearby_distance_asc_is_monotonic():
    results = search_nearby(_dhaka_store(), "me", NearbyQuery(radius_km=50))

    assert len(results) == 3
    assert all(a.distance_km <= b.distance_km for a, b in zip(results, results[1:]))


def test_search_nearby_sorts_names_case_insensitively():
    store = _dhaka_store()
    asc = search_nearby(store, "me", NearbyQuery(radius_km=50, sort=SortMode.NAME_ASC))
    desc = search_nearby(store, "me", NearbyQuery(radius_km=50, sort=SortMode.NAME_DESC))

    assert [r.user.username for r in asc] == ["Alice", "bob", "Zed"]
    assert [r.user.username for r in desc] == ["Zed", "bob", "Alice"]


def test_search_nearby_requires_a_usable_origin():
    store = _dhaka_store()
    store.insert({"_id": "legacy", "username": "old", "location": "23.81,90.41"})

    with pytest.raises(NoUsableOriginError) as missing:
        search_nearby(store, "nowhere", NearbyQuery(radius_km=10))
    assert missing.value.reason == "missing"

    with pytest.raises(NoUsableOriginError) as malformed:
        search_nearby(store, "legacy", NearbyQuery(radius_km=10))
    assert malformed.value.reason == "malformed"

    with pytest.raises(UserNotFoundError):
        search_nearby(store, "ghost", NearbyQuery(radius_km=10))


def test_filter_by_distance_applies_inclusive_bounds():
    results = [_result("a", 1.2), _result("b", 3.4), _result("c", 9.9)]

    assert [r.distance_km for r in filter_by_distance(results, min_km=2, max_km=5)] == [3.4]
    assert [r.distance_km for r in filter_by_distance(results, min_km=3.4)] == [3.4, 9.9]
    assert len(filter_by_distance(results)) == 3


def test_sort_results_is_stable_for_equal_keys():
    results = [_result("x", 2.0), _result("y", 1.0), _result("z", 2.0)]

    assert [r.user.id for r in sort_results(results, SortMode.DISTANCE_ASC)] == ["y", "x", "z"]
    assert [r.user.id for r in sort_results(results, SortMode.DISTANCE_DESC)] == ["x", "z", "y"]


@pytest.mark.parametrize("raw, expected", [("2.5", 2.5), (" 3 ", 3.0), ("", None), ("  ", None), ("abc", None), (None, None), (4, 4.0)])
def test_parse_optional_km_treats_bad_input_as_no_bound(raw, expected):
    assert parse_optional_km(raw) == expected


def test_parse_radius_km_gives_specific_messages():
    assert parse_radius_km("7.5") == 7.5
    with pytest.raises(InvalidSearchInputError, match="Please enter a number"):
        parse_radius_km("five")
    with pytest.raises(InvalidSearchInputError, match="greater than 0"):
        parse_radius_km("-1")
    with pytest.raises(InvalidSearchInputError, match="at most 100"):
        parse_radius_km("150", max_radius_km=100)


def test_nearby_query_from_raw_parses_form_input():
    query = NearbyQuery.from_raw("10", min_km="", max_km="abc", sort="name_desc")
    assert query == NearbyQuery(radius_km=10.0, min_km=None, max_km=None, sort=SortMode.NAME_DESC)

    with pytest.raises(InvalidSearchInputError, match="Unknown sort mode"):
        NearbyQuery.from_raw("10", sort="random")
