# src/nearby/api/app.py
"""
FastAPI application wiring.

Creates the `FastAPI` instance and mounts the routes. Business logic lives in
`nearby.users`, `nearby.proximity` and `nearby.migration`.

Run with: `uvicorn nearby.api.app:app`
"""

from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from nearby.core.logging import configure_logging

from .routes import router

configure_logging()

app = FastAPI(title="Nearby API", version="0.1.0")

# CORS for a separately served map/dashboard frontend.
# - NEARBY_CORS_ORIGINS="http://localhost:8003,http://127.0.0.1:8003"
cors_origins = [s.strip() for s in os.getenv("NEARBY_CORS_ORIGINS", "").split(",") if s.strip()]
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)


@app.get("/api/health")
def health() -> dict:
    return {"status": "ok"}
