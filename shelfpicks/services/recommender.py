"""High level orchestration for recommendation generation."""

from __future__ import annotations

import logging

from ..config import Settings
from ..models import RecommendationResult
from .aggregator import CandidateAggregator
from .library import LibraryStore
from .profiler import Sampler, TasteProfiler
from .ranking import rank_candidates
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)


class RecommendationService:
    """Builds a fresh ranked recommendation page for a user on every call.

    Strategy:
    1. Load the user's source collections and the titles saved in them
    2. Profile a random sample of those titles (genres, directors, lead actors)
    3. Collect TMDB recommendations and similar titles for the sample
    4. Add discovery results for recurring directors and actors
    5. Drop anything already saved in any of the user's collections
    6. Rank by score and return the requested page

    TMDB failures only thin out the candidates. Storage errors propagate.
    """

    def __init__(
        self,
        settings: Settings,
        tmdb_client: TMDBClient,
        store: LibraryStore,
        sampler: Sampler | None = None,
    ):
        self._settings = settings
        self._tmdb = tmdb_client
        self._store = store
        self._sampler = sampler

    async def generate_recommendations(
        self, user_id: str, limit: int | None = None, page: int = 1
    ) -> RecommendationResult:
        limit = self._settings.recommendation_page_size if limit is None else limit
        if limit < 1:
            raise ValueError("limit must be a positive integer")

        if not await self._store.get_enabled_flag(user_id):
            return RecommendationResult.empty(page=page)

        source_collections = await self._store.get_source_collections(user_id)
        if not source_collections:
            return RecommendationResult.empty(page=page)

        library = await self._store.get_library_items(
            [collection.id for collection in source_collections]
        )
        if not library:
            return RecommendationResult.empty(page=page, source_collections=source_collections)

        excluded = frozenset(await self._store.get_owned_or_shared_item_keys(user_id))

        profiler = TasteProfiler(
            self._tmdb,
            self._sampler,
            sample_size=self._settings.recommendation_sample_size,
        )
        profile = await profiler.build(library)

        aggregator = CandidateAggregator(self._tmdb, profile, excluded)
        aggregator.add_direct(profile.samples)
        await aggregator.add_director_matches()
        await aggregator.add_actor_matches()

        ranked = rank_candidates(aggregator.candidates.values(), limit=limit, page=page)
        logger.info(
            "Generated %s candidates for user %s from %s sampled of %s titles (page %s/%s)",
            ranked.total_results,
            user_id,
            len(profile.samples),
            len(library),
            page,
            ranked.total_pages,
        )
        return RecommendationResult(
            results=ranked.items,
            source_collections=source_collections,
            total_source_items=len(library),
            page=ranked.page,
            total_pages=ranked.total_pages,
            total_results=ranked.total_results,
        )
