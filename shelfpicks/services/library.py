"""Storage access for users' collections and recommendation sources."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Protocol, Sequence

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import (
    Collection,
    CollectionCollaborator,
    CollectionItem,
    RecommendationSource,
    User,
)
from ..models import LibraryItem, SourceCollection

logger = logging.getLogger(__name__)


class CollectionAccessError(Exception):
    """Raised when a user references a collection they cannot access."""


class LibraryStore(Protocol):
    """Read operations the recommender needs from persistent storage."""

    async def get_enabled_flag(self, user_id: str) -> bool: ...

    async def get_source_collections(self, user_id: str) -> list[SourceCollection]: ...

    async def get_library_items(
        self, collection_ids: Sequence[str]
    ) -> list[LibraryItem]: ...

    async def get_owned_or_shared_item_keys(self, user_id: str) -> set[str]: ...


def _accessible_collections(user_id: str):
    shared = select(CollectionCollaborator.collection_id).where(
        CollectionCollaborator.user_id == user_id
    )
    return or_(Collection.owner_id == user_id, Collection.id.in_(shared))


class SQLLibraryStore:
    """``LibraryStore`` backed by the relational database.

    Database errors are not caught here; callers decide how to surface them.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_enabled_flag(self, user_id: str) -> bool:
        async with self._session_factory() as session:
            stmt = select(User.recommendations_enabled).where(User.id == user_id)
            result = await session.execute(stmt)
            return bool(result.scalar_one_or_none())

    async def get_source_collections(self, user_id: str) -> list[SourceCollection]:
        """Return the user's source collections, most recently added first."""

        async with self._session_factory() as session:
            stmt = (
                select(Collection.id, Collection.name)
                .join(RecommendationSource, RecommendationSource.collection_id == Collection.id)
                .where(RecommendationSource.user_id == user_id)
                .order_by(RecommendationSource.added_at.desc(), Collection.name)
            )
            result = await session.execute(stmt)
            return [SourceCollection(id=row.id, name=row.name) for row in result.all()]

    async def get_library_items(self, collection_ids: Sequence[str]) -> list[LibraryItem]:
        """Return the distinct titles stored in the given collections."""

        if not collection_ids:
            return []
        async with self._session_factory() as session:
            stmt = (
                select(CollectionItem.movie_id)
                .where(CollectionItem.collection_id.in_(list(collection_ids)))
                .distinct()
                .order_by(CollectionItem.movie_id)
            )
            result = await session.execute(stmt)
            stored_ids = result.scalars().all()

        items: list[LibraryItem] = []
        for stored_id in stored_ids:
            try:
                items.append(LibraryItem.from_stored_id(stored_id))
            except ValueError:
                logger.warning("Skipping unrecognised library identifier %r", stored_id)
        return items

    async def get_owned_or_shared_item_keys(self, user_id: str) -> set[str]:
        """Return every stored identifier in collections the user owns or collaborates on."""

        async with self._session_factory() as session:
            stmt = (
                select(CollectionItem.movie_id)
                .join(Collection, CollectionItem.collection_id == Collection.id)
                .where(_accessible_collections(user_id))
                .distinct()
            )
            result = await session.execute(stmt)
            return {str(movie_id).strip() for movie_id in result.scalars().all()}

    async def get_preferences(self, user_id: str) -> dict[str, bool] | None:
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                return None
            return {"recommendations_enabled": bool(user.recommendations_enabled)}

    async def set_recommendations_enabled(self, user_id: str, enabled: bool) -> bool:
        """Toggle recommendations for a user. Returns ``False`` for unknown users."""

        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                return False
            user.recommendations_enabled = enabled
            await session.commit()
        logger.info("Recommendations %s for user %s", "enabled" if enabled else "disabled", user_id)
        return True

    async def add_source_collection(self, user_id: str, collection_id: str) -> None:
        """Mark a collection as a recommendation source. Adding twice is a no-op."""

        async with self._session_factory() as session:
            await self._ensure_access(session, user_id, [collection_id])
            session.add(RecommendationSource(user_id=user_id, collection_id=collection_id))
            try:
                await session.commit()
            except IntegrityError:
                # uq_recommendation_source already holds this pair
                await session.rollback()
                logger.debug(
                    "Collection %s already a recommendation source for %s",
                    collection_id,
                    user_id,
                )

    async def remove_source_collection(self, user_id: str, collection_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                delete(RecommendationSource).where(
                    RecommendationSource.user_id == user_id,
                    RecommendationSource.collection_id == collection_id,
                )
            )
            await session.commit()

    async def set_source_collections(
        self, user_id: str, collection_ids: Iterable[str]
    ) -> None:
        """Replace the user's source collections.

        Nothing changes unless every collection is accessible to the user.
        """

        requested = list(dict.fromkeys(collection_ids))
        async with self._session_factory() as session:
            await self._ensure_access(session, user_id, requested)
            await session.execute(
                delete(RecommendationSource).where(RecommendationSource.user_id == user_id)
            )
            now = datetime.utcnow()
            session.add_all(
                RecommendationSource(user_id=user_id, collection_id=collection_id, added_at=now)
                for collection_id in requested
            )
            await session.commit()

    @staticmethod
    async def _ensure_access(
        session: AsyncSession, user_id: str, collection_ids: list[str]
    ) -> None:
        if not collection_ids:
            return
        stmt = select(Collection.id).where(
            Collection.id.in_(collection_ids),
            _accessible_collections(user_id),
        )
        accessible = set((await session.execute(stmt)).scalars().all())
        missing = [collection_id for collection_id in collection_ids if collection_id not in accessible]
        if missing:
            raise CollectionAccessError(
                f"User {user_id} cannot access collections: {', '.join(missing)}"
            )
