"""Pydantic models for categories, subcategories, notes and their payloads."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .utils import ensure_utc, utc_now

DEFAULT_CATEGORY_COLOR = "#3b82f6"


def normalize_tags(tags: list[str]) -> list[str]:
    """Strip tags, drop blanks and duplicates while keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for tag in tags:
        cleaned = tag.strip()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result


class _Timestamped(BaseModel):
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at", mode="after")
    @classmethod
    def _aware_created_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class Subcategory(_Timestamped):
    """Second-level grouping nested under exactly one category."""

    id: str
    name: str
    category_id: str


class Category(_Timestamped):
    """Top-level grouping for notes, carries a display color."""

    id: str
    name: str
    color: str = DEFAULT_CATEGORY_COLOR
    subcategories: list[Subcategory] = Field(default_factory=list)


class Note(_Timestamped):
    """The primary content unit: title, rich-text body, tags and images."""

    id: str
    title: str
    content: str = ""
    subcategory_id: str
    tags: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("tags", mode="after")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)

    @field_validator("updated_at", mode="after")
    @classmethod
    def _aware_updated_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _updated_not_before_created(self) -> "Note":
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at
        return self


class CategoryCreate(BaseModel):
    """Category creation payload."""

    name: str
    color: str = DEFAULT_CATEGORY_COLOR


class CategoryUpdate(BaseModel):
    """Partial category update; only explicitly set fields apply."""

    name: str | None = None
    color: str | None = None


class SubcategoryCreate(BaseModel):
    """Subcategory creation payload."""

    name: str
    category_id: str


class SubcategoryUpdate(BaseModel):
    """Partial subcategory update."""

    name: str | None = None
    category_id: str | None = None


class NoteCreate(BaseModel):
    """Note creation payload."""

    title: str
    content: str = ""
    subcategory_id: str
    tags: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="after")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


class NoteUpdate(BaseModel):
    """Partial note update."""

    title: str | None = None
    content: str | None = None
    subcategory_id: str | None = None
    tags: list[str] | None = None
    images: list[str] | None = None

    @field_validator("tags", mode="after")
    @classmethod
    def _dedupe_tags(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else normalize_tags(value)


def changes_of(payload: BaseModel) -> dict[str, Any]:
    """Return only the fields the caller explicitly set on ``payload``.

    None never clears a field here; every updatable field is required on the
    entity, so an explicit None is treated like an omitted field.
    """
    return payload.model_dump(exclude_unset=True, exclude_none=True)


class NotePage(BaseModel):
    """A page of notes returned by offset/limit queries."""

    notes: list[Note]
    total: int
    limit: int | None = None
    offset: int = 0
    has_more: bool = False


class TagCount(BaseModel):
    """Tag usage count."""

    tag: str
    count: int


class SearchResults(BaseModel):
    """Global search result grouped by entity type."""

    notes: list[Note] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    subcategories: list[Subcategory] = Field(default_factory=list)


class AuthUser(BaseModel):
    """An authenticated account and the strategy that vouched for it."""

    id: str
    username: str
    email: str = ""
    source: str = "local"


class SelectionState(BaseModel):
    """Transient navigation state: selections, search text and tag filters."""

    selected_category_id: str | None = None
    selected_subcategory_id: str | None = None
    selected_note_id: str | None = None
    search_query: str = ""
    selected_tags: list[str] = Field(default_factory=list)
