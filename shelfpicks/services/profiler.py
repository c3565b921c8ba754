"""Taste profiling over a bounded sample of the user's library."""

from __future__ import annotations

import asyncio
import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Protocol, Sequence, TypeVar

from ..models import CastMember, CatalogItem, CrewMember, ItemCredits, ItemDetails, LibraryItem
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

LEAD_ACTOR_COUNT = 3
MAX_SAMPLE_SIZE = 10


class Sampler(Protocol):
    """Strategy choosing which library items are profiled."""

    def sample(self, items: Sequence[T], n: int) -> list[T]: ...


class RandomSampler:
    """Shuffle the library and keep the first ``n`` entries."""

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    def sample(self, items: Sequence[T], n: int) -> list[T]:
        shuffled = list(items)
        self._rng.shuffle(shuffled)
        return shuffled[: max(n, 0)]


@dataclass(slots=True)
class PersonAffinity:
    """How many sampled titles credit a given person."""

    id: int
    name: str
    count: int = 0


@dataclass(slots=True)
class SampledItem:
    """Everything fetched from TMDB for one sampled library item."""

    item: LibraryItem
    details: ItemDetails | None
    credits: ItemCredits | None
    recommendations: list[CatalogItem]
    similar: list[CatalogItem]

    @property
    def candidates(self) -> list[CatalogItem]:
        return [*self.recommendations, *self.similar]


@dataclass(slots=True)
class TasteProfile:
    """Genre, director and actor affinities for a single run."""

    genres: Counter[int] = field(default_factory=Counter)
    directors: dict[int, PersonAffinity] = field(default_factory=dict)
    actors: dict[int, PersonAffinity] = field(default_factory=dict)
    samples: list[SampledItem] = field(default_factory=list)

    def genre_match(self, genre_ids: Iterable[int]) -> int:
        return sum(self.genres.get(genre_id, 0) for genre_id in genre_ids)

    def top_genres(self, n: int = 3) -> list[int]:
        """Return the ``n`` strongest genres, ties kept in first-seen order."""

        return [genre_id for genre_id, _ in self.genres.most_common(n)]

    def top_directors(self, n: int = 2, *, min_count: int = 2) -> list[PersonAffinity]:
        return _top_people(self.directors, n, min_count)

    def top_actors(self, n: int = 2, *, min_count: int = 2) -> list[PersonAffinity]:
        return _top_people(self.actors, n, min_count)

    def add_details(self, details: ItemDetails | None) -> None:
        if details is None:
            return
        for genre in details.genres:
            self.genres[genre.id] += 1

    def add_credits(self, credits: ItemCredits | None, *, is_movie: bool) -> None:
        if credits is None:
            return
        directors = [member for member in credits.crew if _is_director(member, is_movie)]
        _bump(self.directors, directors)
        _bump(self.actors, lead_actors(credits.cast))


def lead_actors(cast: Sequence[CastMember], n: int = LEAD_ACTOR_COUNT) -> list[CastMember]:
    """Return the top billed cast members."""

    # Unordered entries sink below billed ones; sorted() keeps API order on ties.
    billed = sorted(
        cast,
        key=lambda member: member.order if member.order is not None else float("inf"),
    )
    return billed[:n]


def _is_director(member: CrewMember, is_movie: bool) -> bool:
    if member.job == "Director":
        return True
    return not is_movie and member.department == "Directing"


def _bump(
    affinities: dict[int, PersonAffinity],
    people: Iterable[CastMember | CrewMember],
) -> None:
    seen: set[int] = set()
    for person in people:
        if person.id in seen:
            continue
        seen.add(person.id)
        affinity = affinities.get(person.id)
        if affinity is None:
            affinity = affinities[person.id] = PersonAffinity(id=person.id, name=person.name)
        affinity.count += 1


def _top_people(
    affinities: dict[int, PersonAffinity], n: int, min_count: int
) -> list[PersonAffinity]:
    eligible = [person for person in affinities.values() if person.count >= min_count]
    eligible.sort(key=lambda person: person.count, reverse=True)
    return eligible[:n]


class TasteProfiler:
    """Fetches TMDB metadata for sampled library items and folds it into a profile."""

    def __init__(
        self,
        tmdb_client: TMDBClient,
        sampler: Sampler | None = None,
        *,
        sample_size: int = MAX_SAMPLE_SIZE,
    ):
        self._tmdb = tmdb_client
        self._sampler = sampler or RandomSampler()
        self._sample_size = min(sample_size, MAX_SAMPLE_SIZE)

    async def build(self, library: Sequence[LibraryItem]) -> TasteProfile:
        """Profile a sample of ``library``.

        All fetches run concurrently; folding happens afterwards in sample
        order so ties are resolved reproducibly.
        """

        sample = self._sampler.sample(library, self._sample_size)
        fetched = await asyncio.gather(*(self._fetch(item) for item in sample))

        profile = TasteProfile()
        for sampled in fetched:
            profile.add_details(sampled.details)
            profile.add_credits(sampled.credits, is_movie=sampled.item.is_movie)
            profile.samples.append(sampled)

        logger.debug(
            "Profiled %s of %s library items: %s genres, %s directors, %s actors",
            len(sample),
            len(library),
            len(profile.genres),
            len(profile.directors),
            len(profile.actors),
        )
        return profile

    async def _fetch(self, item: LibraryItem) -> SampledItem:
        details, credits, recommendations, similar = await asyncio.gather(
            self._tmdb.details_of(item.id, item.is_movie),
            self._tmdb.credits_of(item.id, item.is_movie),
            self._tmdb.recommendations_for(item.id, item.is_movie),
            self._tmdb.similar_to(item.id, item.is_movie),
        )
        return SampledItem(
            item=item,
            details=details,
            credits=credits,
            recommendations=recommendations,
            similar=similar,
        )
