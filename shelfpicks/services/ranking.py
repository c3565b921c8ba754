"""Ordering and pagination of scored candidates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..models import CatalogItem
from ..utils import page_count
from .aggregator import ScoredCandidate


@dataclass(slots=True)
class RankedPage:
    items: list[CatalogItem]
    page: int
    total_pages: int
    total_results: int


def rank_candidates(
    candidates: Iterable[ScoredCandidate], *, limit: int, page: int = 1
) -> RankedPage:
    """Sort candidates by score and return the requested page.

    The sort is stable, so equal scores keep the order in which candidates
    were first collected. Pages outside ``1..total_pages`` are empty.
    """

    ranked = sorted(candidates, key=lambda candidate: candidate.score, reverse=True)
    total = len(ranked)
    pages = page_count(total, limit)
    if page < 1:
        window: list[ScoredCandidate] = []
    else:
        start = (page - 1) * limit
        window = ranked[start : start + limit]
    return RankedPage(
        items=[candidate.item for candidate in window],
        page=page,
        total_pages=pages,
        total_results=total,
    )
