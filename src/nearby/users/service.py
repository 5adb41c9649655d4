"""
User profile operations around the location core.

Every profile write runs free-text locations through the coordinate validator: an
unrecoverable value is dropped (omitted on insert, unset on update) instead of failing
the whole write, so an invalid point is never persisted.

Passwords and authentication are not handled here.
"""

from __future__ import annotations

import logging
from typing import Any

from nearby.core.errors import NoUsableOriginError, UserNotFoundError
from nearby.domain.models import (
    GeoPoint,
    GeoPointLocation,
    MissingLocation,
    UserLocationRecord,
    read_location_field,
)
from nearby.geo.validator import coerce_location_text
from nearby.store.base import Document, UserStore

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, store: UserStore, *, location_field: str = "location"):
        self._store = store
        self._field = location_field

    def _document(self, user_id: Any) -> Document:
        doc = self._store.find_one({"_id": user_id})
        if doc is None:
            raise UserNotFoundError(f"Unknown user id {user_id!r}")
        return doc

    def _record(self, doc: Document) -> UserLocationRecord:
        return UserLocationRecord.from_document(doc, location_field=self._field)

    def register(self, username: str, email: str, location_text: str | None = None) -> str:
        """Insert a new user; returns its id as a string."""
        doc: dict[str, Any] = {
            "username": username,
            "email": email,
            "canReceiveMessages": True,
            "isHidden": False,
        }
        if location_text:
            point = coerce_location_text(location_text)
            if point is not None:
                doc[self._field] = point.to_geojson()
            else:
                logger.info("Dropping unusable location %r for new user %s", location_text, username)
        user_id = self._store.insert(doc)
        logger.info("User added: %s", username)
        return str(user_id)

    def update_profile(self, user_id: Any, *, username: str, email: str, location_text: str | None) -> None:
        """Overwrite display fields and the location (unset when the text is unusable)."""
        set_fields: dict[str, Any] = {"username": username, "email": email}
        unset_fields: list[str] = []
        point = coerce_location_text(location_text)
        if point is not None:
            set_fields[self._field] = point.to_geojson()
        else:
            unset_fields.append(self._field)
        if not self._store.update_fields(user_id, set_fields, unset_fields):
            raise UserNotFoundError(f"Unknown user id {user_id!r}")

    def set_location(self, user_id: Any, point: GeoPoint) -> None:
        """Store an explicit (already ordered) point, e.g. from a map pick or a lookup."""
        if not self._store.update_fields(user_id, {self._field: point.to_geojson()}):
            raise UserNotFoundError(f"Unknown user id {user_id!r}")

    def set_hidden(self, user_id: Any, hidden: bool) -> None:
        if not self._store.update_fields(user_id, {"isHidden": bool(hidden)}):
            raise UserNotFoundError(f"Unknown user id {user_id!r}")

    def set_message_preference(self, user_id: Any, can_receive: bool) -> None:
        if not self._store.update_fields(user_id, {"canReceiveMessages": bool(can_receive)}):
            raise UserNotFoundError(f"Unknown user id {user_id!r}")

    def delete(self, user_id: Any) -> None:
        if self._store.delete_by_filter({"_id": user_id}) == 0:
            raise UserNotFoundError(f"Unknown user id {user_id!r}")

    def get(self, user_id: Any) -> UserLocationRecord:
        return self._record(self._document(user_id))

    def list_discoverable(self, *, viewer_id: str | None = None) -> list[UserLocationRecord]:
        """All users not hidden from discovery, minus the viewer."""
        records = [self._record(doc) for doc in self._store.find({"isHidden": {"$ne": True}})]
        return [r for r in records if r.id != viewer_id]

    def origin_for(self, user_id: Any) -> GeoPoint:
        """Return the user's stored point or raise `NoUsableOriginError`."""
        loc = read_location_field(self._document(user_id), self._field)
        if isinstance(loc, MissingLocation):
            raise NoUsableOriginError(
                "Your location is not set. Please update it in your profile.", reason="missing"
            )
        if not isinstance(loc, GeoPointLocation):
            raise NoUsableOriginError(
                "Your location data is invalid. Please update it in your profile.", reason="malformed"
            )
        if not loc.in_range:
            raise NoUsableOriginError(
                "Your location is out of range. Please update it in your profile.", reason="out_of_range"
            )
        return GeoPoint(lat=loc.lat, lon=loc.lon)
