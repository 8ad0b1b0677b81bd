"""Substring search and tag helpers shared by every backend and the store."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from .models import Category, Note, TagCount

if TYPE_CHECKING:
    from collections.abc import Iterable


def note_matches(note: Note, query: str) -> bool:
    """Return True when ``query`` occurs in the title, content or any tag.

    Matching is a case-insensitive substring test. An empty query matches
    every note.
    """
    needle = query.lower()
    return (
        needle in note.title.lower()
        or needle in note.content.lower()
        or any(needle in tag.lower() for tag in note.tags)
    )


def subcategory_ids_of(categories: Iterable[Category], category_id: str) -> set[str]:
    """Return the ids of the subcategories nested under ``category_id``."""
    for category in categories:
        if category.id == category_id:
            return {sub.id for sub in category.subcategories}
    return set()


def filter_notes(
    notes: Iterable[Note],
    query: str,
    *,
    scope: set[str] | None = None,
) -> list[Note]:
    """Return notes matching ``query``, optionally restricted to subcategory ``scope``."""
    return [
        note
        for note in notes
        if (scope is None or note.subcategory_id in scope) and note_matches(note, query)
    ]


def notes_with_any_tag(notes: Iterable[Note], tags: Iterable[str]) -> list[Note]:
    """Return notes carrying at least one of ``tags`` (logical OR)."""
    wanted = set(tags)
    return [note for note in notes if wanted.intersection(note.tags)]


def aggregate_tags(notes: Iterable[Note]) -> list[str]:
    """Return every tag used by ``notes``, deduplicated and sorted."""
    return sorted({tag for note in notes for tag in note.tags})


def count_tags(notes: Iterable[Note]) -> list[TagCount]:
    """Return tag usage counts ordered by descending count, then tag."""
    counts = Counter(tag for note in notes for tag in note.tags)
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [TagCount(tag=tag, count=count) for tag, count in ordered]
