import pytest

from nearby.core.errors import StoreUnavailableError
from nearby.store.memory import InMemoryUserStore


def _point(lon, lat):
    return {"type": "Point", "coordinates": [lon, lat]}


def test_find_by_field_type_separates_text_and_objects():
    store = InMemoryUserStore(
        [
            {"_id": "t", "location": "1,2"},
            {"_id": "o", "location": _point(2, 1)},
            {"_id": "n"},
        ]
    )
    assert [d["_id"] for d in store.find_by_field_type("location", "string")] == ["t"]
    assert [d["_id"] for d in store.find_by_field_type("location", "object")] == ["o"]


def test_update_fields_sets_and_unsets_in_one_call():
    store = InMemoryUserStore([{"_id": "u", "username": "old", "location": "1,2"}])

    assert store.update_fields("u", {"username": "new"}, ["location"]) is True
    assert store.find_one({"_id": "u"}) == {"_id": "u", "username": "new"}
    assert store.update_fields("missing", {"username": "x"}) is False


def test_returned_documents_are_copies():
    store = InMemoryUserStore([{"_id": "u", "location": _point(1, 1)}])
    doc = store.find_one({"_id": "u"})
    doc["location"]["coordinates"][0] = 500
    assert store.find_one({"_id": "u"})["location"]["coordinates"] == [1, 1]


def test_find_supports_not_equal_filter_and_delete():
    store = InMemoryUserStore([{"_id": "a", "isHidden": True}, {"_id": "b"}, {"_id": "c", "isHidden": False}])
    assert [d["_id"] for d in store.find({"isHidden": {"$ne": True}})] == ["b", "c"]
    assert store.delete_by_filter({"_id": "a"}) == 1
    assert len(store) == 2


def test_geo_near_requires_index_and_orders_nearest_first():
    store = InMemoryUserStore(
        [
            {"_id": "far", "location": _point(0, 0.05)},
            {"_id": "near", "location": _point(0, 0.01)},
            {"_id": "text", "location": "0,0"},
            {"_id": "out", "location": _point(0, 1)},
        ]
    )
    with pytest.raises(StoreUnavailableError):
        list(store.geo_near(_point(0, 0), 10_000))

    store.create_geo_index("location")
    hits = list(store.geo_near(_point(0, 0), 10_000))

    assert [d["_id"] for d, _ in hits] == ["near", "far"]
    assert hits[0][1] == pytest.approx(1111.95, rel=1e-3)


def test_geo_index_rejects_invalid_geometry():
    store = InMemoryUserStore([{"_id": "bad", "location": _point(0, 95)}])
    with pytest.raises(ValueError):
        store.create_geo_index("location")

    store.update_fields("bad", unset_fields=["location"])
    store.create_geo_index("location")
    with pytest.raises(ValueError):
        store.insert({"location": _point(500, 0)})
    with pytest.raises(ValueError):
        store.update_fields("bad", {"location": _point(0, -91)})


def test_from_json_seeds_documents(tmp_path):
    seed = tmp_path / "users.json"
    seed.write_text('[{"_id": "a", "username": "x"}, {"username": "y"}]', encoding="utf-8")

    store = InMemoryUserStore.from_json(seed)

    assert len(store) == 2
    assert store.find_one({"_id": "a"})["username"] == "x"
