"""Entry point for the FastAPI recommendation service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .database import Database
from .services.library import CollectionAccessError, SQLLibraryStore
from .services.recommender import RecommendationService
from .services.tmdb import TMDBClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


class PreferencesUpdate(BaseModel):
    recommendations_enabled: bool


class SourceCollectionsUpdate(BaseModel):
    collection_ids: list[str] = Field(default_factory=list)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(settings.tmdb_timeout_seconds, connect=5.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    store = SQLLibraryStore(database.session_factory)
    tmdb = TMDBClient(settings, tmdb_http_client)
    fastapi_app.state.library_store = store
    fastapi_app.state.recommendation_service = RecommendationService(settings, tmdb, store)
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Recommendations drawn from your saved movie and TV collections",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_recommendation_service(fastapi_app: FastAPI) -> RecommendationService:
    service = getattr(fastapi_app.state, "recommendation_service", None)
    if not isinstance(service, RecommendationService):
        raise RuntimeError("Recommendation service not initialised")
    return service


def get_library_store(fastapi_app: FastAPI) -> SQLLibraryStore:
    store = getattr(fastapi_app.state, "library_store", None)
    if not isinstance(store, SQLLibraryStore):
        raise RuntimeError("Library store not initialised")
    return store


def _storage_unavailable(exc: SQLAlchemyError) -> HTTPException:
    logger.exception("Storage failure: %s", exc)
    return HTTPException(status_code=503, detail="Storage temporarily unavailable")


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/users/{user_id}/recommendations")
    async def recommendations(
        user_id: str,
        limit: int = Query(default=settings.recommendation_page_size, ge=1, le=100),
        page: int = Query(default=1),
    ) -> dict[str, Any]:
        service = get_recommendation_service(fastapi_app)
        try:
            result = await service.generate_recommendations(user_id, limit=limit, page=page)
        except SQLAlchemyError as exc:
            raise _storage_unavailable(exc) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return result.to_payload()

    @fastapi_app.get("/api/users/{user_id}/preferences")
    async def get_preferences(user_id: str) -> dict[str, bool]:
        store = get_library_store(fastapi_app)
        try:
            preferences = await store.get_preferences(user_id)
        except SQLAlchemyError as exc:
            raise _storage_unavailable(exc) from exc
        if preferences is None:
            raise HTTPException(status_code=404, detail="User not found")
        return preferences

    @fastapi_app.put("/api/users/{user_id}/preferences")
    async def update_preferences(user_id: str, payload: PreferencesUpdate) -> dict[str, bool]:
        store = get_library_store(fastapi_app)
        try:
            updated = await store.set_recommendations_enabled(
                user_id, payload.recommendations_enabled
            )
        except SQLAlchemyError as exc:
            raise _storage_unavailable(exc) from exc
        if not updated:
            raise HTTPException(status_code=404, detail="User not found")
        return {"recommendations_enabled": payload.recommendations_enabled}

    @fastapi_app.put("/api/users/{user_id}/recommendation-collections")
    async def replace_source_collections(
        user_id: str, payload: SourceCollectionsUpdate
    ) -> dict[str, Any]:
        store = get_library_store(fastapi_app)
        try:
            await store.set_source_collections(user_id, payload.collection_ids)
            collections = await store.get_source_collections(user_id)
        except CollectionAccessError as exc:
            raise HTTPException(status_code=403, detail=str(exc)) from exc
        except SQLAlchemyError as exc:
            raise _storage_unavailable(exc) from exc
        return {"sourceCollections": [collection.model_dump() for collection in collections]}

    @fastapi_app.post("/api/users/{user_id}/recommendation-collections/{collection_id}")
    async def add_source_collection(user_id: str, collection_id: str) -> dict[str, bool]:
        store = get_library_store(fastapi_app)
        try:
            await store.add_source_collection(user_id, collection_id)
        except CollectionAccessError as exc:
            raise HTTPException(status_code=403, detail=str(exc)) from exc
        except SQLAlchemyError as exc:
            raise _storage_unavailable(exc) from exc
        return {"success": True}

    @fastapi_app.delete("/api/users/{user_id}/recommendation-collections/{collection_id}")
    async def remove_source_collection(user_id: str, collection_id: str) -> dict[str, bool]:
        store = get_library_store(fastapi_app)
        try:
            await store.remove_source_collection(user_id, collection_id)
        except SQLAlchemyError as exc:
            raise _storage_unavailable(exc) from exc
        return {"success": True}


app = create_app()
