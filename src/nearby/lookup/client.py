"""
Location lookup clients.

Two external services can supply a search origin:
- IP geolocation (ip-api.com style): `{"status": "success", "lat": .., "lon": ..}`
- place-name search (Nominatim style): a JSON array of `{"lat": "..", "lon": ".."}`,
  best match first

Both return a canonical `GeoPoint`; any failure becomes a `LocationLookupError` with a
message fit for the user.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from nearby.config.settings import Settings
from nearby.core.errors import LocationLookupError
from nearby.core.http import get_json
from nearby.domain.models import GeoPoint

logger = logging.getLogger(__name__)


def _point(lat: Any, lon: Any, *, source: str) -> GeoPoint:
    try:
        return GeoPoint(lat=float(lat), lon=float(lon))
    except (TypeError, ValueError, ValidationError) as e:
        raise LocationLookupError(f"{source} returned an unusable location ({lat}, {lon})") from e


class LocationLookupClient:
    def __init__(self, settings: Settings):
        self._settings = settings

    def _get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        try:
            return get_json(
                url,
                params=params,
                user_agent=self._settings.lookup.user_agent,
                timeout_seconds=self._settings.app.http_timeout_seconds,
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Location lookup failed url=%s: %s", url, e)
            raise LocationLookupError(f"Location service unavailable: {e}") from e

    def locate_by_ip(self) -> GeoPoint:
        """Approximate the caller's location from their public IP."""
        payload = self._get(self._settings.lookup.ip_geolocation_url)
        if not isinstance(payload, dict) or payload.get("status") != "success":
            message = payload.get("message") if isinstance(payload, dict) else None
            raise LocationLookupError(f"Could not determine location: {message or 'unknown error'}")
        return _point(payload.get("lat"), payload.get("lon"), source="IP geolocation")

    def search_place(self, query: str) -> GeoPoint:
        """Return the first match for a free-text place name."""
        if not query or not query.strip():
            raise LocationLookupError("Please enter a place to search for.")
        payload = self._get(
            self._settings.lookup.place_search_url,
            params={"q": query.strip(), "format": "json", "limit": 1},
        )
        if not isinstance(payload, list) or not payload:
            raise LocationLookupError(f"No results found for {query.strip()!r}.")
        first = payload[0] if isinstance(payload[0], dict) else {}
        return _point(first.get("lat"), first.get("lon"), source="Place search")
