"""Build the configured `UserStore` backend."""

from __future__ import annotations

import logging

from nearby.config.settings import Settings
from nearby.core.env import resolve_project_path
from nearby.store.base import UserStore
from nearby.store.memory import InMemoryUserStore
from nearby.store.mongo import MongoUserStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> UserStore:
    cfg = settings.store
    if cfg.backend == "mongo":
        logger.info("Using MongoDB store %s/%s", cfg.database, cfg.collection)
        return MongoUserStore.from_settings(cfg)

    if cfg.seed_path:
        path = resolve_project_path(cfg.seed_path)
        store = InMemoryUserStore.from_json(path)
        logger.info("Seeded in-memory store with %d user(s) from %s", len(store), path)
        return store
    return InMemoryUserStore()
