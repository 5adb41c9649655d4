"""
API routes.

Endpoints:
- GET    `/api/users`: discovery listing (hidden users excluded)
- POST   `/api/users`: register a user (unusable location text is dropped)
- GET/PUT/DELETE `/api/users/{user_id}`
- PUT    `/api/users/{user_id}/location|visibility|messaging`
- GET    `/api/users/{user_id}/nearby`: search around the user's own location
- GET    `/api/nearby`: search around an arbitrary point
- POST   `/api/maintenance/normalize-locations`, `/api/maintenance/location-index`
- GET    `/api/lookup/ip`, `/api/lookup/place`

Errors use `{"code": ..., "message": ...}` details so the UI can show the message as-is.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from nearby.config.settings import get_settings
from nearby.core.errors import (
    InvalidSearchInputError,
    LocationLookupError,
    NoUsableOriginError,
    StoreUnavailableError,
    UserNotFoundError,
)
from nearby.domain.models import GeoPoint, ProximityResult, UserLocationRecord
from nearby.lookup.client import LocationLookupClient
from nearby.migration.normalizer import LocationNormalizer
from nearby.proximity.engine import NearbyQuery, search_from_point
from nearby.store.base import UserStore
from nearby.store.factory import build_store
from nearby.users.service import UserService

router = APIRouter()


@lru_cache
def _store() -> UserStore:
    settings = get_settings()
    store = build_store(settings)
    if settings.store.ensure_index_on_start:
        LocationNormalizer(store, field=settings.store.location_field).ensure_location_index()
    return store


@lru_cache
def _lookup_client() -> LocationLookupClient:
    return LocationLookupClient(get_settings())


def _users() -> UserService:
    return UserService(_store(), location_field=get_settings().store.location_field)


def _error(status_code: int, code: str, exc: Exception) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": str(exc)})


class UserCreate(BaseModel):
    username: str
    email: str
    location: str | None = None


class UserUpdate(BaseModel):
    username: str
    email: str
    location: str | None = None


class VisibilityUpdate(BaseModel):
    hidden: bool


class MessagingUpdate(BaseModel):
    can_receive_messages: bool


class NearbyResponse(BaseModel):
    origin: GeoPoint
    radius_km: float
    results: list[ProximityResult]


def _nearby_query(radius_km: str | None, min_km: str | None, max_km: str | None, sort: str | None) -> NearbyQuery:
    settings = get_settings()
    try:
        return NearbyQuery.from_raw(
            radius_km if radius_km is not None else settings.search.default_radius_km,
            min_km=min_km,
            max_km=max_km,
            sort=sort or settings.search.default_sort,
            max_radius_km=settings.search.max_radius_km,
        )
    except InvalidSearchInputError as e:
        raise _error(400, "INVALID_SEARCH_INPUT", e) from e


@router.get("/api/users", response_model=list[UserLocationRecord])
def list_users(viewer_id: str | None = None) -> list[UserLocationRecord]:
    """Discovery listing: every non-hidden user except the viewer."""
    try:
        return _users().list_discoverable(viewer_id=viewer_id)
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e


@router.post("/api/users", status_code=201)
def create_user(payload: UserCreate) -> dict:
    users = _users()
    try:
        user_id = users.register(payload.username, payload.email, payload.location)
        return {"id": user_id, "user": users.get(user_id).model_dump(mode="json")}
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e


@router.get("/api/users/{user_id}", response_model=UserLocationRecord)
def get_user(user_id: str) -> UserLocationRecord:
    try:
        return _users().get(user_id)
    except UserNotFoundError as e:
        raise _error(404, "USER_NOT_FOUND", e) from e
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e


@router.put("/api/users/{user_id}", response_model=UserLocationRecord)
def update_user(user_id: str, payload: UserUpdate) -> UserLocationRecord:
    users = _users()
    try:
        users.update_profile(user_id, username=payload.username, email=payload.email, location_text=payload.location)
        return users.get(user_id)
    except UserNotFoundError as e:
        raise _error(404, "USER_NOT_FOUND", e) from e
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e


@router.put("/api/users/{user_id}/location", response_model=UserLocationRecord)
def set_user_location(user_id: str, point: GeoPoint) -> UserLocationRecord:
    users = _users()
    try:
        users.set_location(user_id, point)
        return users.get(user_id)
    except UserNotFoundError as e:
        raise _error(404, "USER_NOT_FOUND", e) from e
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e


@router.put("/api/users/{user_id}/visibility", response_model=UserLocationRecord)
def set_user_visibility(user_id: str, payload: VisibilityUpdate) -> UserLocationRecord:
    users = _users()
    try:
        users.set_hidden(user_id, payload.hidden)
        return users.get(user_id)
    except UserNotFoundError as e:
        raise _error(404, "USER_NOT_FOUND", e) from e
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e


@router.put("/api/users/{user_id}/messaging", response_model=UserLocationRecord)
def set_user_messaging(user_id: str, payload: MessagingUpdate) -> UserLocationRecord:
    users = _users()
    try:
        users.set_message_preference(user_id, payload.can_receive_messages)
        return users.get(user_id)
    except UserNotFoundError as e:
        raise _error(404, "USER_NOT_FOUND", e) from e
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e


@router.delete("/api/users/{user_id}", status_code=204)
def delete_user(user_id: str) -> None:
    try:
        _users().delete(user_id)
    except UserNotFoundError as e:
        raise _error(404, "USER_NOT_FOUND", e) from e
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e


@router.get("/api/users/{user_id}/nearby", response_model=NearbyResponse)
def get_user_nearby(
    user_id: str,
    radius_km: str | None = None,
    min_km: str | None = None,
    max_km: str | None = None,
    sort: str | None = None,
) -> NearbyResponse:
    """Users around `user_id`'s stored location, never including `user_id` itself."""
    query = _nearby_query(radius_km, min_km, max_km, sort)
    field = get_settings().store.location_field
    try:
        origin = _users().origin_for(user_id)
        results = search_from_point(_store(), origin, query, viewer_id=user_id, location_field=field)
    except UserNotFoundError as e:
        raise _error(404, "USER_NOT_FOUND", e) from e
    except NoUsableOriginError as e:
        raise _error(409, "NO_USABLE_ORIGIN", e) from e
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e
    return NearbyResponse(origin=origin, radius_km=query.radius_km, results=results)


@router.get("/api/nearby", response_model=NearbyResponse)
def get_point_nearby(
    lat: float = Query(...),
    lon: float = Query(...),
    radius_km: str | None = None,
    min_km: str | None = None,
    max_km: str | None = None,
    sort: str | None = None,
    viewer_id: str | None = None,
) -> NearbyResponse:
    """Users around an arbitrary point (map pick, IP or place lookup)."""
    query = _nearby_query(radius_km, min_km, max_km, sort)
    try:
        origin = GeoPoint(lat=lat, lon=lon)
    except ValueError as e:
        raise HTTPException(
            status_code=400,
            detail={"code": "INVALID_ORIGIN", "message": f"({lat}, {lon}) is not a valid location"},
        ) from e
    try:
        results = search_from_point(
            _store(), origin, query, viewer_id=viewer_id, location_field=get_settings().store.location_field
        )
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e
    return NearbyResponse(origin=origin, radius_km=query.radius_km, results=results)


@router.post("/api/maintenance/normalize-locations")
def post_normalize_locations() -> dict:
    """Run the location migration and return its counters."""
    normalizer = LocationNormalizer(_store(), field=get_settings().store.location_field)
    try:
        return normalizer.run().as_dict()
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e


@router.post("/api/maintenance/location-index")
def post_location_index() -> dict:
    normalizer = LocationNormalizer(_store(), field=get_settings().store.location_field)
    try:
        return normalizer.ensure_location_index().as_dict()
    except StoreUnavailableError as e:
        raise _error(503, "STORE_UNAVAILABLE", e) from e


@router.get("/api/lookup/ip", response_model=GeoPoint)
def get_lookup_ip() -> GeoPoint:
    try:
        return _lookup_client().locate_by_ip()
    except LocationLookupError as e:
        raise _error(502, "LOOKUP_FAILED", e) from e


@router.get("/api/lookup/place", response_model=GeoPoint)
def get_lookup_place(q: str) -> GeoPoint:
    try:
        return _lookup_client().search_place(q)
    except LocationLookupError as e:
        raise _error(502, "LOOKUP_FAILED", e) from e
