import pytest

from nearby.core.errors import UserNotFoundError
from nearby.domain.models import GeoPoint
from nearby.store.memory import InMemoryUserStore
from nearby.users.service import UserService


def test_register_stores_canonical_point_from_swapped_text():
    store = InMemoryUserStore()
    users = UserService(store)

    user_id = users.register("nadia", "nadia@example.com", "95,40")

    doc = store.find_one({"_id": user_id})
    assert doc["location"] == {"type": "Point", "coordinates": [95, 40]}
    assert doc["canReceiveMessages"] is True
    assert doc["isHidden"] is False


def test_register_omits_unrecoverable_location_instead_of_failing():
    store = InMemoryUserStore()
    users = UserService(store)

    user_id = users.register("ghost", "ghost@example.com", "200,300")

    assert "location" not in store.find_one({"_id": user_id})
    assert users.get(user_id).location is None


def test_update_profile_unsets_location_on_bad_text():
    store = InMemoryUserStore()
    users = UserService(store)
    user_id = users.register("a", "a@example.com", "23.81,90.41")

    users.update_profile(user_id, username="b", email="b@example.com", location_text="abc,12")

    record = users.get(user_id)
    assert record.username == "b"
    assert record.location is None

    users.update_profile(user_id, username="b", email="b@example.com", location_text="10, 20")
    assert users.get(user_id).location == GeoPoint(lat=10, lon=20)


def test_flags_and_discovery_listing():
    store = InMemoryUserStore()
    users = UserService(store)
    me = users.register("me", "me@example.com")
    shy = users.register("shy", "shy@example.com")
    open_ = users.register("open", "open@example.com")

    users.set_hidden(shy, True)
    users.set_message_preference(open_, False)

    listing = users.list_discoverable(viewer_id=me)
    assert [r.id for r in listing] == [open_]
    assert listing[0].can_receive_messages is False


def test_set_location_and_delete():
    store = InMemoryUserStore()
    users = UserService(store)
    user_id = users.register("a", "a@example.com")

    users.set_location(user_id, GeoPoint(lat=23.81, lon=90.41))
    assert users.origin_for(user_id) == GeoPoint(lat=23.81, lon=90.41)

    users.delete(user_id)
    with pytest.raises(UserNotFoundError):
        users.get(user_id)
    with pytest.raises(UserNotFoundError):
        users.delete(user_id)
    with pytest.raises(UserNotFoundError):
        users.set_hidden(user_id, True)
