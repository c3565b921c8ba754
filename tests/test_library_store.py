from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from shelfpicks.database import Database
from shelfpicks.db_models import (
    Collection,
    CollectionCollaborator,
    CollectionItem,
    RecommendationSource,
    User,
)
from shelfpicks.models import LibraryItem
from shelfpicks.services.library import CollectionAccessError, SQLLibraryStore


async def _seed(database: Database) -> None:
    """Two users, owned and shared collections, and two recommendation sources."""

    earlier = datetime.utcnow() - timedelta(days=2)
    later = datetime.utcnow() - timedelta(days=1)
    async with database.session_factory() as session:
        session.add_all(
            [
                User(id="u1", username="ada", recommendations_enabled=True),
                User(id="u2", username="grace", recommendations_enabled=False),
            ]
        )
        await session.flush()
        session.add_all(
            [
                Collection(id="c1", name="Favorites", owner_id="u1"),
                Collection(id="c2", name="Watchlist", owner_id="u1"),
                Collection(id="c3", name="Shared", owner_id="u2"),
                Collection(id="c4", name="Private", owner_id="u2"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                CollectionItem(collection_id="c1", movie_id="550", is_movie=True),
                CollectionItem(collection_id="c1", movie_id="27205", is_movie=True),
                CollectionItem(collection_id="c1", movie_id="bogus"),
                CollectionItem(collection_id="c2", movie_id="1399tv", is_movie=False),
                CollectionItem(collection_id="c2", movie_id="550", is_movie=True),
                CollectionItem(collection_id="c3", movie_id="680", is_movie=True),
                CollectionItem(collection_id="c4", movie_id="13", is_movie=True),
                CollectionCollaborator(collection_id="c3", user_id="u1", permission="edit"),
                RecommendationSource(user_id="u1", collection_id="c1", added_at=earlier),
                RecommendationSource(user_id="u1", collection_id="c2", added_at=later),
            ]
        )
        await session.commit()


def _run(tmp_path, scenario) -> None:
    async def runner() -> None:
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}")
        await database.create_all()
        try:
            await _seed(database)
            await scenario(SQLLibraryStore(database.session_factory))
        finally:
            await database.dispose()

    asyncio.run(runner())


def test_enabled_flag_defaults_to_false_for_unknown_users(tmp_path) -> None:
    async def scenario(store: SQLLibraryStore) -> None:
        assert await store.get_enabled_flag("u1") is True
        assert await store.get_enabled_flag("u2") is False
        assert await store.get_enabled_flag("missing") is False

    _run(tmp_path, scenario)


def test_source_collections_are_newest_first(tmp_path) -> None:
    async def scenario(store: SQLLibraryStore) -> None:
        collections = await store.get_source_collections("u1")
        assert [(c.id, c.name) for c in collections] == [
            ("c2", "Watchlist"),
            ("c1", "Favorites"),
        ]
        assert await store.get_source_collections("u2") == []

    _run(tmp_path, scenario)


def test_library_items_are_distinct_and_parsed(tmp_path) -> None:
    async def scenario(store: SQLLibraryStore) -> None:
        items = await store.get_library_items(["c1", "c2"])
        assert items == [
            LibraryItem(id="1399", is_movie=False),
            LibraryItem(id="27205", is_movie=True),
            LibraryItem(id="550", is_movie=True),
        ]
        assert await store.get_library_items([]) == []

    _run(tmp_path, scenario)


def test_exclusion_keys_cover_owned_and_shared_collections(tmp_path) -> None:
    async def scenario(store: SQLLibraryStore) -> None:
        keys = await store.get_owned_or_shared_item_keys("u1")
        assert keys == {"550", "27205", "bogus", "1399tv", "680"}
        assert "13" not in keys

    _run(tmp_path, scenario)


def test_add_source_collection_requires_access(tmp_path) -> None:
    async def scenario(store: SQLLibraryStore) -> None:
        await store.add_source_collection("u1", "c3")
        await store.add_source_collection("u1", "c3")
        ids = [c.id for c in await store.get_source_collections("u1")]
        assert sorted(ids) == ["c1", "c2", "c3"]

        with pytest.raises(CollectionAccessError):
            await store.add_source_collection("u1", "c4")

    _run(tmp_path, scenario)


def test_adding_an_existing_source_is_a_no_op(tmp_path) -> None:
    async def count_sources(store: SQLLibraryStore, collection_id: str) -> int:
        async with store._session_factory() as session:
            stmt = select(RecommendationSource.id).where(
                RecommendationSource.user_id == "u1",
                RecommendationSource.collection_id == collection_id,
            )
            return len((await session.execute(stmt)).scalars().all())

    async def scenario(store: SQLLibraryStore) -> None:
        await store.add_source_collection("u1", "c1")
        assert await count_sources(store, "c1") == 1
        assert [c.id for c in await store.get_source_collections("u1")] == ["c2", "c1"]

        await asyncio.gather(
            store.add_source_collection("u1", "c3"),
            store.add_source_collection("u1", "c3"),
        )
        assert await count_sources(store, "c3") == 1

    _run(tmp_path, scenario)


def test_set_source_collections_is_all_or_nothing(tmp_path) -> None:
    async def scenario(store: SQLLibraryStore) -> None:
        with pytest.raises(CollectionAccessError):
            await store.set_source_collections("u1", ["c3", "c4"])
        assert {c.id for c in await store.get_source_collections("u1")} == {"c1", "c2"}

        await store.set_source_collections("u1", ["c3", "c3"])
        assert [c.id for c in await store.get_source_collections("u1")] == ["c3"]

        await store.set_source_collections("u1", [])
        assert await store.get_source_collections("u1") == []

    _run(tmp_path, scenario)


def test_remove_source_collection(tmp_path) -> None:
    async def scenario(store: SQLLibraryStore) -> None:
        await store.remove_source_collection("u1", "c2")
        await store.remove_source_collection("u1", "c4")
        assert [c.id for c in await store.get_source_collections("u1")] == ["c1"]

    _run(tmp_path, scenario)


def test_preferences_toggle(tmp_path) -> None:
    async def scenario(store: SQLLibraryStore) -> None:
        assert await store.get_preferences("u2") == {"recommendations_enabled": False}
        assert await store.set_recommendations_enabled("u2", True) is True
        assert await store.get_enabled_flag("u2") is True
        assert await store.set_recommendations_enabled("missing", True) is False
        assert await store.get_preferences("missing") is None

    _run(tmp_path, scenario)
