"""
HTTP helpers.

A single JSON GET used by the location lookup clients. It raises on non-2xx so the
caller can turn upstream failures into a specific message instead of an empty result.
"""

from __future__ import annotations

from typing import Any

import httpx


DEFAULT_USER_AGENT = "nearby/0.1.0 (+https://local)"


def get_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout_seconds: float = 15,
) -> Any:
    """GET `url` and return the decoded JSON body.

    Raises:
        httpx.HTTPError: transport errors or non-2xx responses.
        ValueError: the body is not JSON.
    """
    with httpx.Client(timeout=timeout_seconds, headers={"User-Agent": user_agent}) as client:
        resp = client.get(url, params=params)
        resp.raise_for_status()
        return resp.json()
