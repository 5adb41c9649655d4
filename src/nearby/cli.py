"""
Nearby CLI entrypoint.

Operator and debugging commands without the HTTP API:
- `migrate-locations`: run the location normalizer and print its counters
- `ensure-index`: strip invalid points and create the geospatial index
- `nearby`: search around a user's stored location
- `watch`: the same search, refreshed on a timer until interrupted
- `locate`: resolve an origin from the caller's IP or a place name
"""

from __future__ import annotations

import argparse
import json
import threading
from typing import Any

from nearby.config.settings import Settings, get_settings
from nearby.core.errors import NearbyError
from nearby.core.logging import configure_logging
from nearby.domain.models import ProximityResult, SortMode
from nearby.lookup.client import LocationLookupClient
from nearby.migration.normalizer import LocationNormalizer
from nearby.proximity.engine import NearbyQuery, search_nearby
from nearby.proximity.refresh import LiveRefresh
from nearby.store.base import UserStore
from nearby.store.factory import build_store


def _open_store(settings: Settings) -> UserStore:
    store = build_store(settings)
    if settings.store.ensure_index_on_start:
        LocationNormalizer(store, field=settings.store.location_field).ensure_location_index()
    return store


def _print_results(results: list[ProximityResult], *, as_json: bool) -> None:
    if as_json:
        print(json.dumps([r.model_dump(mode="json") for r in results], ensure_ascii=False, indent=2))
        return
    for r in results:
        print(f"{r.user.username}  |  {r.distance_km:.2f} km")
    print(f"Results: {len(results)}")


def _query_from_args(args: argparse.Namespace, settings: Settings) -> NearbyQuery:
    return NearbyQuery.from_raw(
        args.radius_km if args.radius_km is not None else settings.search.default_radius_km,
        min_km=args.min_km,
        max_km=args.max_km,
        sort=args.sort or settings.search.default_sort,
        max_radius_km=settings.search.max_radius_km,
    )


def _cmd_migrate_locations(_: argparse.Namespace) -> int:
    settings = get_settings()
    report = LocationNormalizer(build_store(settings), field=settings.store.location_field).run()
    print(f"fixed={report.fixed} removed={report.removed} ok={report.already_ok} failed={report.failed}")
    return 0 if report.failed == 0 else 1


def _cmd_ensure_index(_: argparse.Namespace) -> int:
    settings = get_settings()
    result = LocationNormalizer(build_store(settings), field=settings.store.location_field).ensure_location_index()
    print(json.dumps(result.as_dict()))
    return 0 if result.index_created else 1


def _cmd_nearby(args: argparse.Namespace) -> int:
    settings = get_settings()
    query = _query_from_args(args, settings)
    store = _open_store(settings)
    results = search_nearby(store, args.user_id, query, location_field=settings.store.location_field)
    _print_results(results, as_json=bool(args.json))
    return 0


def _cmd_watch(args: argparse.Namespace) -> int:
    settings = get_settings()
    query = _query_from_args(args, settings)
    store = _open_store(settings)
    interval = float(args.interval) if args.interval is not None else settings.refresh.interval_seconds

    def search() -> list[ProximityResult]:
        return search_nearby(store, args.user_id, query, location_field=settings.store.location_field)

    refresh: LiveRefresh[list[ProximityResult]] = LiveRefresh(
        search,
        lambda results: _print_results(results, as_json=False),
        interval_seconds=interval,
        on_error=lambda e: print(f"error: {e}"),
    )
    _print_results(search(), as_json=False)
    refresh.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        refresh.stop(wait=True)
    return 0


def _cmd_locate(args: argparse.Namespace) -> int:
    client = LocationLookupClient(get_settings())
    point = client.search_place(args.place) if args.place else client.locate_by_ip()
    print(f"{point.lat},{point.lon}")
    return 0


def _add_search_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--user-id", required=True)
    p.add_argument("--radius-km", type=str, default=None)
    p.add_argument("--min-km", type=str, default=None, help="Blank or non-numeric means no bound")
    p.add_argument("--max-km", type=str, default=None, help="Blank or non-numeric means no bound")
    p.add_argument("--sort", choices=[m.value for m in SortMode], default=None)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the Nearby CLI."""
    parser = argparse.ArgumentParser(prog="nearby")
    sub = parser.add_subparsers(dest="command", required=True)

    mig = sub.add_parser("migrate-locations", help="Normalize stored locations (safe to run repeatedly).")
    mig.set_defaults(func=_cmd_migrate_locations)

    idx = sub.add_parser("ensure-index", help="Strip invalid points, then create the geospatial index.")
    idx.set_defaults(func=_cmd_ensure_index)

    near = sub.add_parser("nearby", help="List users within a radius of a user's location.")
    _add_search_args(near)
    near.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    near.set_defaults(func=_cmd_nearby)

    watch = sub.add_parser("watch", help="Like `nearby`, refreshed on a timer until Ctrl-C.")
    _add_search_args(watch)
    watch.add_argument("--interval", type=float, default=None, help="Seconds between refreshes")
    watch.set_defaults(func=_cmd_watch)

    loc = sub.add_parser("locate", help="Resolve a search origin from your IP or a place name.")
    loc.add_argument("--place", type=str, default=None)
    loc.set_defaults(func=_cmd_locate)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m nearby.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except NearbyError as e:
        print(f"error: {e}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
