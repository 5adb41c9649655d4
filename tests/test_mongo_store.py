from types import SimpleNamespace

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from nearby.core.errors import StoreUnavailableError
from nearby.migration.normalizer import LocationNormalizer
from nearby.store.mongo import MongoUserStore
from nearby.users.service import UserService


def _unreachable_cursor():
    # pymongo cursors only select a server once iteration starts.
    raise ServerSelectionTimeoutError("no servers")
    yield


class _FakeCollection:
    """Records the calls the adapter makes (no server needed)."""

    def __init__(self, aggregate_docs=None, fail=False):
        self.calls = []
        self._aggregate_docs = aggregate_docs or []
        self._fail = fail

    def update_one(self, filter, update):
        self.calls.append(("update_one", filter, update))
        return SimpleNamespace(matched_count=1)

    def find(self, filter):
        self.calls.append(("find", filter))
        return _unreachable_cursor() if self._fail else iter([])

    def aggregate(self, pipeline):
        self.calls.append(("aggregate", pipeline))
        return _unreachable_cursor() if self._fail else iter(self._aggregate_docs)

    def create_index(self, keys):
        if self._fail:
            raise ServerSelectionTimeoutError("no servers")
        self.calls.append(("create_index", keys))
        return "location_2dsphere"


def test_update_fields_sends_set_and_unset_together():
    coll = _FakeCollection()
    oid = ObjectId()

    assert MongoUserStore(coll).update_fields(str(oid), {"username": "x"}, ["location"]) is True

    assert coll.calls == [("update_one", {"_id": oid}, {"$set": {"username": "x"}, "$unset": {"location": ""}})]


def test_find_by_field_type_uses_type_operator():
    coll = _FakeCollection()
    list(MongoUserStore(coll).find_by_field_type("location", "string"))
    assert coll.calls == [("find", {"location": {"$type": "string"}})]


def test_geo_near_builds_spherical_stage_and_returns_meters():
    coll = _FakeCollection(aggregate_docs=[{"_id": 1, "username": "a", "dist": 1500.0}, {"_id": 2}])
    origin = {"type": "Point", "coordinates": [90.41, 23.81]}

    hits = list(MongoUserStore(coll).geo_near(origin, 10_000))

    assert hits == [({"_id": 1, "username": "a"}, 1500.0)]
    stage = coll.calls[0][1][0]["$geoNear"]
    assert stage["near"] == origin
    assert stage["maxDistance"] == 10_000
    assert stage["spherical"] is True


def test_create_geo_index_uses_2dsphere():
    coll = _FakeCollection()
    MongoUserStore(coll).create_geo_index("location")
    assert coll.calls == [("create_index", [("location", "2dsphere")])]


def test_cursor_failures_during_iteration_become_store_unavailable():
    store = MongoUserStore(_FakeCollection(fail=True))
    origin = {"type": "Point", "coordinates": [90.41, 23.81]}

    with pytest.raises(StoreUnavailableError):
        list(store.find({"_id": "x"}))
    with pytest.raises(StoreUnavailableError):
        list(store.find_by_field_type("location", "string"))
    with pytest.raises(StoreUnavailableError):
        list(store.geo_near(origin, 1000))


def test_discovery_listing_surfaces_store_unavailable():
    users = UserService(MongoUserStore(_FakeCollection(fail=True)))

    with pytest.raises(StoreUnavailableError):
        users.list_discoverable()


def test_create_geo_index_wraps_connection_failure():
    with pytest.raises(StoreUnavailableError):
        MongoUserStore(_FakeCollection(fail=True)).create_geo_index("location")


def test_normalizer_does_not_swallow_an_unreachable_store():
    normalizer = LocationNormalizer(MongoUserStore(_FakeCollection(fail=True)))

    with pytest.raises(StoreUnavailableError):
        normalizer.run()
