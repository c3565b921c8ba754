"""Merge recommendation candidates from several TMDB sources into one scored map."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AbstractSet, Iterable

from ..models import CatalogItem
from .profiler import PersonAffinity, SampledItem, TasteProfile
from .tmdb import PersonRole, TMDBClient

logger = logging.getLogger(__name__)

RATING_WEIGHT = 10
GENRE_WEIGHT = 5
DIRECT_POPULARITY_CAP = 50
PERSON_POPULARITY_CAP = 20
REPEAT_SOURCE_BONUS = 20
PERSON_MATCH_BONUS = 10
PERSON_COUNT_WEIGHT = 3

TOP_PEOPLE = 2
MIN_PERSON_COUNT = 2
PERSON_RESULTS = 3
PREFERRED_GENRES = 3


@dataclass(slots=True)
class ScoredCandidate:
    """A deduplicated candidate and the signals gathered for it so far."""

    item: CatalogItem
    score: float
    sources: int = 1
    is_director_based: bool = False
    is_actor_based: bool = False


def base_score(item: CatalogItem, *, popularity_cap: float) -> float:
    popularity = min((item.popularity or 0) / 10, popularity_cap)
    return item.vote_average * RATING_WEIGHT + popularity


class CandidateAggregator:
    """Accumulates scored candidates for a single recommendation run.

    Passes must run in order (direct, director, actor) because the person
    passes boost candidates already collected by earlier passes.
    """

    def __init__(
        self,
        tmdb_client: TMDBClient,
        profile: TasteProfile,
        excluded_keys: AbstractSet[str],
    ):
        self._tmdb = tmdb_client
        self._profile = profile
        self._excluded = excluded_keys
        self.candidates: dict[str, ScoredCandidate] = {}

    def add_direct(self, samples: Iterable[SampledItem]) -> None:
        """Fold recommendation and similar-title results of each sampled item."""

        for sampled in samples:
            for item in sampled.candidates:
                key = item.key(sampled.item.is_movie)
                if key in self._excluded:
                    continue
                genre_match = self._profile.genre_match(item.genre_ids)
                combined = (
                    base_score(item, popularity_cap=DIRECT_POPULARITY_CAP)
                    + genre_match * GENRE_WEIGHT
                )
                existing = self.candidates.get(key)
                if existing is None:
                    self.candidates[key] = ScoredCandidate(item=item, score=combined)
                    continue
                existing.sources += 1
                existing.score = combined + existing.sources * REPEAT_SOURCE_BONUS

    async def add_director_matches(self) -> None:
        directors = self._profile.top_directors(TOP_PEOPLE, min_count=MIN_PERSON_COUNT)
        await self._add_person_matches(directors, "crew")

    async def add_actor_matches(self) -> None:
        actors = self._profile.top_actors(TOP_PEOPLE, min_count=MIN_PERSON_COUNT)
        await self._add_person_matches(actors, "cast")

    async def _add_person_matches(
        self, people: list[PersonAffinity], role: PersonRole
    ) -> None:
        if not people:
            return
        genres = self._profile.top_genres(PREFERRED_GENRES)
        batches = await asyncio.gather(
            *(
                self._tmdb.discover_by_person(person.id, True, role, genres)
                for person in people
            )
        )
        for person, results in zip(people, batches):
            for item in results[:PERSON_RESULTS]:
                self._merge_person_match(item, person, role)

    def _merge_person_match(
        self, item: CatalogItem, person: PersonAffinity, role: PersonRole
    ) -> None:
        key = item.key(True)
        if key in self._excluded:
            return
        genre_match = self._profile.genre_match(item.genre_ids)
        if genre_match == 0:
            return
        combined = (
            base_score(item, popularity_cap=PERSON_POPULARITY_CAP)
            + genre_match * GENRE_WEIGHT
            + person.count * PERSON_COUNT_WEIGHT
        )
        candidate = self.candidates.get(key)
        if candidate is None:
            candidate = self.candidates[key] = ScoredCandidate(item=item, score=combined)
        else:
            candidate.score = max(candidate.score, combined) + PERSON_MATCH_BONUS
            candidate.sources += 1
        if role == "crew":
            candidate.is_director_based = True
        else:
            candidate.is_actor_based = True
        logger.debug(
            "%s match via %s: %s (%.1f)",
            "Director" if role == "crew" else "Actor",
            person.name,
            item.display_title(),
            candidate.score,
        )
