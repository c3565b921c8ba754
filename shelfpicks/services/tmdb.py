"""Client for the TMDB endpoints that feed the recommender."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Literal, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config import Settings
from ..models import CastMember, CatalogItem, CrewMember, ItemCredits, ItemDetails, media_type

logger = logging.getLogger(__name__)

PersonRole = Literal["crew", "cast"]
ModelT = TypeVar("ModelT", bound=BaseModel)

DISCOVER_SORT_ORDER: dict[str, str] = {
    "crew": "vote_average.desc",
    "cast": "popularity.desc",
}


class TMDBClient:
    """Read-only wrapper around the TMDB v3 API.

    Every public call degrades to ``None`` or an empty list when TMDB is
    unreachable, answers with an error status or returns an unexpected body.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client
        self._api_key = settings.tmdb_api_key
        self._timeout = httpx.Timeout(
            settings.tmdb_timeout_seconds,
            connect=min(settings.tmdb_timeout_seconds, 5.0),
        )
        self._semaphore = asyncio.Semaphore(settings.tmdb_max_concurrency)
        if not self._api_key:
            logger.warning("TMDB API key missing, catalog lookups will return nothing")

    async def recommendations_for(
        self, item_id: int | str, is_movie: bool
    ) -> list[CatalogItem]:
        """Return TMDB's recommendations for a title."""

        payload = await self._get(f"/{media_type(is_movie)}/{item_id}/recommendations")
        return self._parse_results(payload)

    async def similar_to(self, item_id: int | str, is_movie: bool) -> list[CatalogItem]:
        """Return titles TMDB considers similar to the given one."""

        payload = await self._get(f"/{media_type(is_movie)}/{item_id}/similar")
        return self._parse_results(payload)

    async def details_of(self, item_id: int | str, is_movie: bool) -> ItemDetails | None:
        payload = await self._get(f"/{media_type(is_movie)}/{item_id}")
        if payload is None:
            return None
        try:
            return ItemDetails.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Unexpected TMDB details payload for %s: %s", item_id, exc)
            return None

    async def credits_of(self, item_id: int | str, is_movie: bool) -> ItemCredits | None:
        payload = await self._get(f"/{media_type(is_movie)}/{item_id}/credits")
        if payload is None:
            return None
        return ItemCredits(
            cast=self._parse_models(CastMember, payload.get("cast")),
            crew=self._parse_models(CrewMember, payload.get("crew")),
        )

    async def discover_by_person(
        self,
        person_id: int,
        is_movie: bool,
        role: PersonRole,
        preferred_genre_ids: Iterable[int] = (),
    ) -> list[CatalogItem]:
        """Discover well-voted titles featuring a person.

        Directors (``crew``) are sorted by rating and actors (``cast``) by
        popularity. Preferred genres are OR-matched when provided.
        """

        if role not in DISCOVER_SORT_ORDER:
            raise ValueError(f"Unsupported person role: {role}")
        params: dict[str, Any] = {
            f"with_{role}": str(person_id),
            "sort_by": DISCOVER_SORT_ORDER[role],
            "vote_count.gte": self._settings.discovery_min_vote_count,
        }
        genres = [str(genre_id) for genre_id in preferred_genre_ids]
        if genres:
            params["with_genres"] = "|".join(genres)
        payload = await self._get(f"/discover/{media_type(is_movie)}", params)
        return self._parse_results(payload)

    def _params(self, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {"language": self._settings.tmdb_language}
        if self._api_key and not self._uses_bearer_token:
            params["api_key"] = self._api_key
        if extra:
            params.update(extra)
        return params

    @property
    def _uses_bearer_token(self) -> bool:
        # v4 read access tokens are JWTs
        return bool(self._api_key and self._api_key.startswith("eyJ"))

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._uses_bearer_token:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _get(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        if not self._api_key:
            return None

        url = f"{self._settings.tmdb_base_url}{endpoint}"
        try:
            async with self._semaphore:
                response = await asyncio.wait_for(
                    self._client.get(
                        url,
                        params=self._params(params),
                        headers=self._headers(),
                        timeout=self._timeout,
                    ),
                    self._settings.tmdb_timeout_seconds,
                )
        except asyncio.TimeoutError:
            logger.warning(
                "TMDB request to %s exceeded %ss", endpoint, self._settings.tmdb_timeout_seconds
            )
            return None
        except httpx.HTTPError as exc:
            logger.warning(
                "TMDB request to %s failed (%s): %s",
                endpoint,
                exc.__class__.__name__,
                exc,
            )
            return None

        if response.status_code >= 400:
            logger.warning("TMDB API error (%s) on %s", response.status_code, endpoint)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Unexpected non-JSON TMDB response on %s", endpoint)
            return None
        if not isinstance(data, dict):
            logger.warning("Unexpected TMDB response structure on %s", endpoint)
            return None
        return data

    def _parse_results(self, payload: dict[str, Any] | None) -> list[CatalogItem]:
        if payload is None:
            return []
        return self._parse_models(CatalogItem, payload.get("results"))

    @staticmethod
    def _parse_models(model: type[ModelT], entries: Any) -> list[ModelT]:
        if not isinstance(entries, list):
            return []
        parsed: list[ModelT] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            try:
                parsed.append(model.model_validate(entry))
            except ValidationError as exc:
                logger.debug("Skipping malformed TMDB %s entry: %s", model.__name__, exc)
        return parsed
