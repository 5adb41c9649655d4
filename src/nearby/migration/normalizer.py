"""
Location normalizer (batch migration).

Brings every stored user location into canonical GeoJSON form:

Pass 1 (legacy text):
    "lat,lon" strings are parsed + classified; success replaces the string with a
    canonical point, anything unrecoverable (including blank text) unsets the field.

Pass 2 (stored objects):
    in-range points are left untouched (counted as `already_ok`), out-of-range points
    get a single lat/lon swap test, anything else is unset.

A converged record is never rewritten, so running the migration again is a no-op
(`fixed == 0`). A failing update is logged and counted as `failed`; the batch goes on.

`ensure_location_index` strips remaining invalid geometry before creating the 2dsphere
index; an index creation failure is logged and reported, not raised.
"""

from __future__ import annotations

import logging
from typing import Any

from nearby.core.errors import LocationInputError
from nearby.domain.models import (
    GeoPoint,
    GeoPointLocation,
    IndexMaintenanceResult,
    MalformedLocation,
    MigrationReport,
    RawTextLocation,
    read_location_field,
)
from nearby.geo.validator import parse_location_text, repair_stored_point
from nearby.store.base import UserStore

logger = logging.getLogger(__name__)


class LocationNormalizer:
    def __init__(self, store: UserStore, *, field: str = "location"):
        self._store = store
        self._field = field

    def run(self) -> MigrationReport:
        """Run both passes and return the counters."""
        report = MigrationReport()
        touched = self._normalize_text_locations(report)
        self._repair_geo_points(report, skip_ids=touched)
        logger.info(
            "Location data migration complete. fixed=%d removed=%d ok=%d failed=%d",
            report.fixed,
            report.removed,
            report.already_ok,
            report.failed,
        )
        return report

    def _set_point(self, doc_id: Any, point: GeoPoint) -> None:
        self._store.update_fields(doc_id, {self._field: point.to_geojson()})

    def _unset(self, doc_id: Any) -> None:
        self._store.update_fields(doc_id, unset_fields=[self._field])

    def _normalize_text_locations(self, report: MigrationReport) -> set[Any]:
        touched: set[Any] = set()
        for doc in self._store.find_by_field_type(self._field, "string"):
            doc_id = doc["_id"]
            loc = read_location_field(doc, self._field)
            if not isinstance(loc, RawTextLocation):
                continue
            try:
                try:
                    point = parse_location_text(loc.text)
                except LocationInputError as e:
                    self._unset(doc_id)
                    report.removed += 1
                    logger.warning("Removed unrecoverable location for user=%s: %s", doc_id, e)
                else:
                    self._set_point(doc_id, point)
                    report.fixed += 1
                touched.add(doc_id)
            except Exception:
                report.failed += 1
                logger.exception("Failed to normalize text location for user=%s", doc_id)
        return touched

    def _repair_geo_points(self, report: MigrationReport, *, skip_ids: set[Any]) -> None:
        for doc in self._store.find_by_field_type(self._field, "object"):
            doc_id = doc["_id"]
            if doc_id in skip_ids:
                continue
            loc = read_location_field(doc, self._field)
            try:
                if isinstance(loc, GeoPointLocation) and loc.in_range:
                    report.already_ok += 1
                elif isinstance(loc, GeoPointLocation):
                    try:
                        point = repair_stored_point(loc)
                    except LocationInputError:
                        self._unset(doc_id)
                        report.removed += 1
                        logger.warning(
                            "Removed out-of-range point for user=%s: lon=%s lat=%s", doc_id, loc.lon, loc.lat
                        )
                    else:
                        self._set_point(doc_id, point)
                        report.fixed += 1
                elif isinstance(loc, MalformedLocation):
                    self._unset(doc_id)
                    report.removed += 1
                    logger.warning("Removed malformed location object for user=%s", doc_id)
            except Exception:
                report.failed += 1
                logger.exception("Failed to repair geo location for user=%s", doc_id)

    def strip_invalid_points(self) -> int:
        """Unset every stored object location that is not an in-range point."""
        removed = 0
        for doc in self._store.find_by_field_type(self._field, "object"):
            loc = read_location_field(doc, self._field)
            if isinstance(loc, GeoPointLocation) and loc.in_range:
                continue
            try:
                self._unset(doc["_id"])
            except Exception:
                logger.exception("Failed to strip invalid geo location for user=%s", doc["_id"])
                continue
            removed += 1
            logger.warning("Removed invalid geo location for user=%s", doc["_id"])
        return removed

    def ensure_location_index(self) -> IndexMaintenanceResult:
        removed = self.strip_invalid_points()
        try:
            self._store.create_geo_index(self._field)
        except Exception as e:
            logger.error("Failed to create geospatial index on %r: %s", self._field, e)
            return IndexMaintenanceResult(removed=removed, index_created=False)
        return IndexMaintenanceResult(removed=removed, index_created=True)
