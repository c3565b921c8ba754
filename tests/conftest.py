"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Sequence, TypeVar

import httpx
import pytest

# Ensure the application package is importable when running tests without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shelfpicks.config import Settings  # noqa: E402

T = TypeVar("T")

TMDB_TEST_URL = "https://tmdb.test/3"
API_PREFIX = "/3"


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object with defaults suitable for tests."""

    base: dict[str, Any] = {
        "TMDB_API_KEY": "test-key",
        "TMDB_API_URL": TMDB_TEST_URL,
    }
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


class HeadSampler:
    """Deterministic sampler keeping library order."""

    def sample(self, items: Sequence[T], n: int) -> list[T]:
        return list(items)[:n]


class TMDBStub:
    """Routes TMDB paths to canned payloads for ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path: str, payload: Any = None, *, status: int = 200) -> None:
        self.routes[path] = (status, payload)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix(API_PREFIX)
        route = self.routes.get(path)
        if route is None:
            return httpx.Response(404, json={"status_message": "Not found"})
        status, payload = route
        if isinstance(payload, Exception):
            raise payload
        if callable(payload):
            payload = payload(request)
        return httpx.Response(status, json=payload)

    def paths(self) -> list[str]:
        return [request.url.path.removeprefix(API_PREFIX) for request in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def tmdb_stub() -> TMDBStub:
    return TMDBStub()


def movie(item_id: int, **fields: Any) -> dict[str, Any]:
    """Return a TMDB list entry with sensible defaults."""

    payload: dict[str, Any] = {
        "id": item_id,
        "title": f"Movie {item_id}",
        "poster_path": f"/poster{item_id}.jpg",
        "backdrop_path": None,
        "release_date": "2001-01-01",
        "overview": "",
        "vote_average": 6.0,
        "vote_count": 500,
        "popularity": 10.0,
        "genre_ids": [],
    }
    payload.update(fields)
    return payload
