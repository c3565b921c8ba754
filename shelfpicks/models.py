"""Pydantic models describing catalog payloads and recommendation results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import dedup_key, parse_stored_id

MediaType = Literal["movie", "tv"]


def media_type(is_movie: bool) -> MediaType:
    return "movie" if is_movie else "tv"


@dataclass(slots=True, frozen=True)
class LibraryItem:
    """A title saved in one of the user's recommendation source collections."""

    id: str
    is_movie: bool

    @classmethod
    def from_stored_id(cls, value: str) -> "LibraryItem":
        provider_id, is_movie = parse_stored_id(value)
        return cls(id=provider_id, is_movie=is_movie)


class CatalogItem(BaseModel):
    """A movie or series entry as returned by TMDB list endpoints.

    Unknown provider fields are kept so the entry can be handed back to
    clients unchanged.
    """

    model_config = ConfigDict(extra="allow")

    id: int
    title: str | None = None
    name: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    overview: str | None = None
    vote_average: float = 0.0
    vote_count: int | None = None
    popularity: float | None = None
    genre_ids: list[int] = Field(default_factory=list)

    @field_validator("vote_average", mode="before")
    @classmethod
    def _default_rating(cls, value: object) -> object:
        return 0.0 if value is None else value

    @field_validator("genre_ids", mode="before")
    @classmethod
    def _default_genres(cls, value: object) -> object:
        return [] if value is None else value

    def display_title(self) -> str:
        """Return a human-friendly title for logs and previews."""

        return (self.title or self.name or "").strip() or f"TMDb {self.id}"

    def key(self, is_movie: bool) -> str:
        return dedup_key(self.id, is_movie)


class Genre(BaseModel):
    id: int
    name: str | None = None


class ItemDetails(BaseModel):
    """Subset of the TMDB details payload used for taste profiling."""

    model_config = ConfigDict(extra="allow")

    id: int | None = None
    genres: list[Genre] = Field(default_factory=list)

    @field_validator("genres", mode="before")
    @classmethod
    def _default_genres(cls, value: object) -> object:
        return [] if value is None else value


class CastMember(BaseModel):
    id: int
    name: str = ""
    character: str | None = None
    order: int | None = None


class CrewMember(BaseModel):
    id: int
    name: str = ""
    job: str | None = None
    department: str | None = None


class ItemCredits(BaseModel):
    """Cast and crew listing for a single title."""

    cast: list[CastMember] = Field(default_factory=list)
    crew: list[CrewMember] = Field(default_factory=list)

    @field_validator("cast", "crew", mode="before")
    @classmethod
    def _default_members(cls, value: object) -> object:
        return [] if value is None else value


class SourceCollection(BaseModel):
    id: str
    name: str


class RecommendationResult(BaseModel):
    """One page of ranked recommendations for a user."""

    model_config = ConfigDict(populate_by_name=True)

    results: list[CatalogItem] = Field(default_factory=list)
    source_collections: list[SourceCollection] = Field(
        default_factory=list, serialization_alias="sourceCollections"
    )
    total_source_items: int = Field(default=0, serialization_alias="totalSourceItems")
    page: int = 1
    total_pages: int = 0
    total_results: int = 0

    @classmethod
    def empty(
        cls,
        *,
        page: int,
        source_collections: list[SourceCollection] | None = None,
        total_source_items: int = 0,
    ) -> "RecommendationResult":
        return cls(
            results=[],
            source_collections=list(source_collections or []),
            total_source_items=total_source_items,
            page=page,
            total_pages=0,
            total_results=0,
        )

    def to_payload(self) -> dict[str, object]:
        """Return the JSON payload served to API clients."""

        return self.model_dump(mode="json", by_alias=True)
