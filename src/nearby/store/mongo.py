"""
MongoDB store adapter (pymongo).

Maps the `UserStore` primitives onto a single users collection:
- `find_by_field_type` -> `{"field": {"$type": ...}}`
- `update_fields` -> one `update_one` carrying both `$set` and `$unset`
- `geo_near` -> a `$geoNear` aggregation stage (spherical, meters)
- `create_geo_index` -> a 2dsphere index

Driver connection failures are re-raised as `StoreUnavailableError`.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Mapping

from bson import ObjectId
from pymongo import GEOSPHERE, MongoClient
from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure

from nearby.config.settings import StoreSettings
from nearby.core.errors import StoreUnavailableError
from nearby.store.base import Document, FieldType

logger = logging.getLogger(__name__)

_DISTANCE_FIELD = "dist"


def _coerce_id(doc_id: Any) -> Any:
    # Ids travel through the API/CLI as hex strings.
    if isinstance(doc_id, str) and ObjectId.is_valid(doc_id):
        return ObjectId(doc_id)
    return doc_id


def _coerce_filter(filter: Mapping[str, Any] | None) -> dict[str, Any]:
    out = dict(filter or {})
    if "_id" in out:
        out["_id"] = _coerce_id(out["_id"])
    return out


class MongoUserStore:
    """`UserStore` backed by a pymongo collection."""

    def __init__(self, collection: Collection):
        self._collection = collection

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "MongoUserStore":
        client: MongoClient = MongoClient(settings.mongo_uri, serverSelectionTimeoutMS=5000)
        return cls(client[settings.database][settings.collection])

    def find(self, filter: Mapping[str, Any] | None = None) -> Iterator[Document]:
        # Cursors are lazy; the server is first contacted while iterating.
        try:
            yield from self._collection.find(_coerce_filter(filter))
        except ConnectionFailure as e:
            raise StoreUnavailableError(str(e)) from e

    def find_one(self, filter: Mapping[str, Any]) -> Document | None:
        try:
            return self._collection.find_one(_coerce_filter(filter))
        except ConnectionFailure as e:
            raise StoreUnavailableError(str(e)) from e

    def find_by_field_type(self, field: str, type_name: FieldType) -> Iterator[Document]:
        try:
            yield from self._collection.find({field: {"$type": type_name}})
        except ConnectionFailure as e:
            raise StoreUnavailableError(str(e)) from e

    def insert(self, document: Mapping[str, Any]) -> Any:
        try:
            return self._collection.insert_one(dict(document)).inserted_id
        except ConnectionFailure as e:
            raise StoreUnavailableError(str(e)) from e

    def update_fields(
        self, doc_id: Any, set_fields: Mapping[str, Any] | None = None, unset_fields: Iterable[str] | None = None
    ) -> bool:
        update: dict[str, Any] = {}
        if set_fields:
            update["$set"] = dict(set_fields)
        unset = {field: "" for field in unset_fields or ()}
        if unset:
            update["$unset"] = unset
        if not update:
            return False
        try:
            result = self._collection.update_one({"_id": _coerce_id(doc_id)}, update)
        except ConnectionFailure as e:
            raise StoreUnavailableError(str(e)) from e
        return result.matched_count > 0

    def delete_by_filter(self, filter: Mapping[str, Any]) -> int:
        try:
            return int(self._collection.delete_many(_coerce_filter(filter)).deleted_count)
        except ConnectionFailure as e:
            raise StoreUnavailableError(str(e)) from e

    def geo_near(
        self, origin: Mapping[str, Any], max_distance_m: float, *, field: str = "location"
    ) -> Iterator[tuple[Document, float]]:
        pipeline = [
            {
                "$geoNear": {
                    "near": dict(origin),
                    "key": field,
                    "distanceField": _DISTANCE_FIELD,
                    "maxDistance": float(max_distance_m),
                    "spherical": True,
                }
            }
        ]
        try:
            for doc in self._collection.aggregate(pipeline):
                distance = doc.pop(_DISTANCE_FIELD, None)
                if distance is None:
                    continue
                yield doc, float(distance)
        except ConnectionFailure as e:
            raise StoreUnavailableError(str(e)) from e

    def create_geo_index(self, field: str) -> None:
        try:
            name = self._collection.create_index([(field, GEOSPHERE)])
        except ConnectionFailure as e:
            raise StoreUnavailableError(str(e)) from e
        logger.info("Geospatial index ready: %s", name)
