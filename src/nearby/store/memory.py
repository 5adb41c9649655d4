"""
In-memory document store.

Implements the `UserStore` interface over a dict of documents. It is used by tests, by
the CLI/API when `store.backend: memory`, and for local demos seeded from a JSON file.

Behaviour mirrors the MongoDB primitives the core relies on:
- `find_by_field_type` matches BSON-ish types ("string" -> str, "object" -> dict).
- `geo_near` returns nearest-first (ties keep insertion order) with spherical distances
  in meters, skipping documents without a valid point.
- once a geo index exists, writes carrying invalid geometry are rejected, and creating
  the index fails if invalid geometry is already stored.
"""

from __future__ import annotations

import copy
import json
import threading
import uuid
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from nearby.core.errors import StoreUnavailableError
from nearby.core.geo import GeoPoint as CoreGeoPoint
from nearby.core.geo import haversine_m
from nearby.domain.models import GeoPointLocation, MalformedLocation, read_location_field
from nearby.store.base import Document, FieldType

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "object": lambda v: isinstance(v, dict),
}


def _matches(document: Mapping[str, Any], filter: Mapping[str, Any] | None) -> bool:
    for key, expected in (filter or {}).items():
        actual = document.get(key)
        if isinstance(expected, Mapping):
            if set(expected) != {"$ne"}:
                raise ValueError(f"Unsupported filter operator for {key!r}: {sorted(expected)}")
            if actual == expected["$ne"]:
                return False
        elif actual != expected:
            return False
    return True


def _geometry_error(document: Mapping[str, Any], field: str) -> str | None:
    loc = read_location_field(document, field)
    if isinstance(loc, GeoPointLocation) and not loc.in_range:
        return f"longitude/latitude is out of bounds: [{loc.lon}, {loc.lat}]"
    if isinstance(loc, MalformedLocation) and isinstance(loc.value, dict):
        return "Point must only contain numeric elements"
    return None


class InMemoryUserStore:
    """A thread-safe, process-local `UserStore`."""

    def __init__(self, documents: Iterable[Mapping[str, Any]] | None = None):
        self._docs: dict[Any, Document] = {}
        self._geo_indexes: set[str] = set()
        self._lock = threading.RLock()
        for doc in documents or []:
            self.insert(doc)

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryUserStore":
        """Seed a store from a JSON array of user documents."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"Invalid seed file {path}; expected a JSON array of documents.")
        return cls(data)

    def __len__(self) -> int:
        return len(self._docs)

    def _check_geometry(self, document: Mapping[str, Any]) -> None:
        for field in self._geo_indexes:
            err = _geometry_error(document, field)
            if err:
                raise ValueError(f"Can't extract geo keys for {field!r}: {err}")

    def find(self, filter: Mapping[str, Any] | None = None) -> Iterator[Document]:
        with self._lock:
            snapshot = [copy.deepcopy(d) for d in self._docs.values() if _matches(d, filter)]
        return iter(snapshot)

    def find_one(self, filter: Mapping[str, Any]) -> Document | None:
        return next(self.find(filter), None)

    def find_by_field_type(self, field: str, type_name: FieldType) -> Iterator[Document]:
        check = _TYPE_CHECKS[type_name]
        with self._lock:
            snapshot = [copy.deepcopy(d) for d in self._docs.values() if field in d and check(d[field])]
        return iter(snapshot)

    def insert(self, document: Mapping[str, Any]) -> Any:
        doc = copy.deepcopy(dict(document))
        doc.setdefault("_id", uuid.uuid4().hex)
        with self._lock:
            if doc["_id"] in self._docs:
                raise ValueError(f"Duplicate key _id={doc['_id']!r}")
            self._check_geometry(doc)
            self._docs[doc["_id"]] = doc
        return doc["_id"]

    def update_fields(
        self, doc_id: Any, set_fields: Mapping[str, Any] | None = None, unset_fields: Iterable[str] | None = None
    ) -> bool:
        with self._lock:
            current = self._docs.get(doc_id)
            if current is None:
                return False
            updated = dict(current)
            updated.update(copy.deepcopy(dict(set_fields or {})))
            for field in unset_fields or ():
                updated.pop(field, None)
            self._check_geometry(updated)
            self._docs[doc_id] = updated
        return True

    def delete_by_filter(self, filter: Mapping[str, Any]) -> int:
        with self._lock:
            doomed = [k for k, d in self._docs.items() if _matches(d, filter)]
            for k in doomed:
                del self._docs[k]
        return len(doomed)

    def geo_near(
        self, origin: Mapping[str, Any], max_distance_m: float, *, field: str = "location"
    ) -> Iterator[tuple[Document, float]]:
        if field not in self._geo_indexes:
            raise StoreUnavailableError(f"geo near query requires a geospatial index on {field!r}")
        lon, lat = origin["coordinates"]
        center = CoreGeoPoint(lat=float(lat), lon=float(lon))

        hits: list[tuple[Document, float]] = []
        for doc in self.find():
            loc = read_location_field(doc, field)
            if not isinstance(loc, GeoPointLocation) or not loc.in_range:
                continue
            d = haversine_m(center, CoreGeoPoint(lat=loc.lat, lon=loc.lon))
            if d <= max_distance_m:
                hits.append((doc, d))
        hits.sort(key=lambda hit: hit[1])
        return iter(hits)

    def create_geo_index(self, field: str) -> None:
        with self._lock:
            for doc in self._docs.values():
                err = _geometry_error(doc, field)
                if err:
                    raise ValueError(f"Can't extract geo keys for _id={doc['_id']!r}: {err}")
            self._geo_indexes.add(field)
