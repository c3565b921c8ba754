"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="ShelfPicks", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_language: str = Field(default="en-US", alias="TMDB_LANGUAGE")
    tmdb_timeout_seconds: float = Field(
        default=10.0, alias="TMDB_TIMEOUT_SECONDS", gt=0, le=60
    )
    tmdb_max_concurrency: int = Field(
        default=8, alias="TMDB_MAX_CONCURRENCY", ge=1, le=64
    )

    recommendation_sample_size: int = Field(
        default=10, alias="RECOMMENDATION_SAMPLE_SIZE", ge=1, le=10
    )
    recommendation_page_size: int = Field(
        default=20, alias="RECOMMENDATION_PAGE_SIZE", ge=1, le=100
    )
    discovery_min_vote_count: int = Field(
        default=100, alias="DISCOVERY_MIN_VOTE_COUNT", ge=0
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./shelfpicks.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def _strip_blank_key(cls, value: object) -> object:
        """Treat blank API keys as missing."""

        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("tmdb_language")
    @classmethod
    def _validate_language(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("TMDB_LANGUAGE must not be empty")
        return cleaned

    @property
    def tmdb_base_url(self) -> str:
        """Return the TMDB API root without a trailing slash."""

        return str(self.tmdb_api_url).rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
