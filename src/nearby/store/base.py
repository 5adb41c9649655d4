"""
Document store interface.

This is the narrow set of primitives the proximity core needs from a document store.
Documents are plain dicts shaped like MongoDB user documents:

    {"_id": ..., "username": str, "email": str,
     "location": {"type": "Point", "coordinates": [lon, lat]} | "lat,lon" (legacy),
     "canReceiveMessages": bool, "isHidden": bool}

Filters are MongoDB-style mappings; implementations must support plain equality and
`{"$ne": value}` on top-level fields.

Only single-document updates are atomic. There are no cross-document transactions, so a
profile write racing a normalizer update on the same document is last-writer-wins.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Literal, Mapping, Protocol

FieldType = Literal["string", "object"]
Document = dict[str, Any]


class UserStore(Protocol):
    def find(self, filter: Mapping[str, Any] | None = None) -> Iterator[Document]: ...

    def find_one(self, filter: Mapping[str, Any]) -> Document | None: ...

    def find_by_field_type(self, field: str, type_name: FieldType) -> Iterator[Document]: ...

    def insert(self, document: Mapping[str, Any]) -> Any: ...

    def update_fields(
        self, doc_id: Any, set_fields: Mapping[str, Any] | None = None, unset_fields: Iterable[str] | None = None
    ) -> bool: ...

    def delete_by_filter(self, filter: Mapping[str, Any]) -> int: ...

    def geo_near(
        self, origin: Mapping[str, Any], max_distance_m: float, *, field: str = "location"
    ) -> Iterator[tuple[Document, float]]: ...

    def create_geo_index(self, field: str) -> None: ...
