"""Utility helpers for the ShelfPicks service."""

from __future__ import annotations

import math
import re

TV_SUFFIX = "tv"
STORED_ID_RE = re.compile(r"^(\d+)(tv)?$")


def dedup_key(item_id: int | str, is_movie: bool) -> str:
    """Return the canonical identity used to deduplicate catalog entries."""

    return f"{item_id}" if is_movie else f"{item_id}{TV_SUFFIX}"


def parse_stored_id(value: str) -> tuple[str, bool]:
    """Split a stored collection identifier into ``(provider_id, is_movie)``.

    Movies are stored as plain numeric strings and series carry a ``tv``
    suffix, e.g. ``"550"`` or ``"1399tv"``.
    """

    match = STORED_ID_RE.match((value or "").strip())
    if not match:
        raise ValueError(f"Unrecognised library identifier: {value!r}")
    return match.group(1), match.group(2) is None


def page_count(total: int, limit: int) -> int:
    """Return the number of pages needed to show ``total`` entries."""

    if limit < 1:
        raise ValueError("limit must be a positive integer")
    return math.ceil(total / limit)
