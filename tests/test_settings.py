"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from shelfpicks.config import Settings


def test_defaults_match_recommender_limits() -> None:
    settings = Settings(_env_file=None)

    assert settings.recommendation_sample_size == 10
    assert settings.recommendation_page_size == 20
    assert settings.discovery_min_vote_count == 100
    assert settings.tmdb_base_url == "https://api.themoviedb.org/3"


def test_blank_api_key_is_treated_as_missing() -> None:
    settings = Settings(_env_file=None, TMDB_API_KEY="   ")

    assert settings.tmdb_api_key is None


def test_base_url_drops_trailing_slash() -> None:
    settings = Settings(_env_file=None, TMDB_API_URL="https://tmdb.example.com/3/")

    assert settings.tmdb_base_url == "https://tmdb.example.com/3"


@pytest.mark.parametrize(
    "overrides",
    [
        {"TMDB_TIMEOUT_SECONDS": 0},
        {"TMDB_TIMEOUT_SECONDS": 61},
        {"RECOMMENDATION_SAMPLE_SIZE": 0},
        {"RECOMMENDATION_SAMPLE_SIZE": 11},
        {"RECOMMENDATION_PAGE_SIZE": 500},
        {"TMDB_LANGUAGE": "  "},
    ],
)
def test_invalid_values_raise(overrides: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)  # type: ignore[arg-type]
