# src/nearby/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/nearby/config/defaults.yaml`, then optionally overridden by:
- an external YAML file via `NEARBY_CONFIG_PATH` (replaces the packaged defaults)
- environment variables (e.g., `NEARBY_MONGO_URI`, `NEARBY_LOG_LEVEL`)

Design rule:
- Tuning knobs (radius bounds, refresh cadence, lookup endpoints) live in YAML, not in
  business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from nearby.core.env import load_dotenv_if_present
from nearby.domain.models import SortMode


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `nearby.config`."""
    text = resources.files("nearby.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "Nearby"
    http_timeout_seconds: float = 15
    log_level: str = "INFO"


class StoreSettings(BaseModel):
    backend: Literal["memory", "mongo"] = "memory"
    mongo_uri: str = "mongodb://localhost:27017"
    database: str = "nearby"
    collection: str = "users"
    location_field: str = "location"
    seed_path: str | None = None
    ensure_index_on_start: bool = True


class SearchSettings(BaseModel):
    default_radius_km: float = Field(5, gt=0)
    max_radius_km: float = Field(100, gt=0)
    default_sort: SortMode = SortMode.DISTANCE_ASC


class RefreshSettings(BaseModel):
    interval_seconds: float = Field(3.0, gt=0)


class LookupSettings(BaseModel):
    ip_geolocation_url: str = "http://ip-api.com/json"
    place_search_url: str = "https://nominatim.openstreetmap.org/search"
    user_agent: str = "nearby/0.1.0 (+https://local)"


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)
    lookup: LookupSettings = Field(default_factory=LookupSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: the whitelist is intentionally small.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("NEARBY_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    backend = os.getenv("NEARBY_STORE_BACKEND")
    if backend:
        data.setdefault("store", {})["backend"] = backend.strip().lower()

    mongo_uri = os.getenv("NEARBY_MONGO_URI")
    if mongo_uri:
        data.setdefault("store", {})["mongo_uri"] = mongo_uri

    seed_path = os.getenv("NEARBY_SEED_PATH")
    if seed_path:
        data.setdefault("store", {})["seed_path"] = seed_path

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("NEARBY_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
