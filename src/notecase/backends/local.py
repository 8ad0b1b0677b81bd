"""Local key/value backend.

Categories (with nested subcategories) and notes are stored as two JSON
documents; every image is stored as an inline data URL under its own key.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from notecase.errors import BackendError
from notecase.images import generate_image_id, to_data_url
from notecase.models import (
    Category,
    CategoryUpdate,
    Note,
    NoteCreate,
    NoteUpdate,
    Subcategory,
    SubcategoryUpdate,
    changes_of,
)
from notecase.sample_data import create_sample_data
from notecase.search import filter_notes, subcategory_ids_of
from notecase.storage import CATEGORIES_KEY, NOTES_KEY, image_key
from notecase.utils import generate_id, next_timestamp, utc_now

from .base import Backend

if TYPE_CHECKING:
    from collections.abc import Iterator

    from notecase.storage import LocalKeyValueStore

logger = logging.getLogger(__name__)

_CATEGORY_LIST = TypeAdapter(list[Category])
_NOTE_LIST = TypeAdapter(list[Note])


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (OSError, ValueError) as exc:
        logger.exception("Local storage failed while trying to %s", action)
        msg = f"Failed to {action}: {exc}"
        raise BackendError(msg) from exc


class LocalBackend(Backend):
    """Backend persisting everything in a ``LocalKeyValueStore``."""

    name = "local"

    def __init__(self, kv_store: LocalKeyValueStore) -> None:
        """Bind the backend to ``kv_store``."""
        self.kv = kv_store

    # -- raw documents -------------------------------------------------

    def _load(self, key: str, adapter: TypeAdapter[Any]) -> list[Any]:
        raw = self.kv.get_json(key, [])
        try:
            return adapter.validate_python(raw)
        except ValidationError as exc:
            logger.error("Discarding malformed data under %s: %s", key, exc)  # noqa: TRY400
            return []

    def _categories(self) -> list[Category]:
        return self._load(CATEGORIES_KEY, _CATEGORY_LIST)

    def _notes(self) -> list[Note]:
        return self._load(NOTES_KEY, _NOTE_LIST)

    def _save_categories(self, categories: list[Category]) -> None:
        with _storage_errors("save categories"):
            self.kv.set_json(CATEGORIES_KEY, _CATEGORY_LIST.dump_python(categories, mode="json"))

    def _save_notes(self, notes: list[Note]) -> None:
        with _storage_errors("save notes"):
            self.kv.set_json(NOTES_KEY, _NOTE_LIST.dump_python(notes, mode="json"))

    # -- categories ----------------------------------------------------

    def list_categories(self) -> list[Category]:
        """Return categories in insertion order."""
        return self._categories()

    def list_notes(self) -> list[Note]:
        """Return notes in insertion order."""
        return self._notes()

    def create_category(self, name: str, color: str) -> Category:
        """Append a new category with a locally generated id."""
        category = Category(id=generate_id(), name=name, color=color)
        categories = self._categories()
        categories.append(category)
        self._save_categories(categories)
        return category

    def update_category(
        self,
        category_id: str,
        changes: CategoryUpdate,
    ) -> Category | None:
        """Merge ``changes`` into the category; unknown ids are ignored."""
        categories = self._categories()
        for index, category in enumerate(categories):
            if category.id == category_id:
                updated = category.model_copy(update=changes_of(changes))
                categories[index] = updated
                self._save_categories(categories)
                return updated
        return None

    def delete_category(self, category_id: str) -> None:
        """Remove the category, its subcategories and their notes."""
        categories = self._categories()
        doomed = subcategory_ids_of(categories, category_id)
        self._save_categories([c for c in categories if c.id != category_id])
        if doomed:
            self._save_notes(
                [n for n in self._notes() if n.subcategory_id not in doomed],
            )

    # -- subcategories -------------------------------------------------

    def create_subcategory(self, name: str, category_id: str) -> Subcategory:
        """Append a subcategory to ``category_id``."""
        categories = self._categories()
        for category in categories:
            if category.id == category_id:
                subcategory = Subcategory(
                    id=generate_id(),
                    name=name,
                    category_id=category_id,
                )
                category.subcategories.append(subcategory)
                self._save_categories(categories)
                return subcategory
        msg = f"Category {category_id} not found"
        raise BackendError(msg, status_code=404)

    def update_subcategory(
        self,
        subcategory_id: str,
        changes: SubcategoryUpdate,
    ) -> Subcategory | None:
        """Rename and/or move a subcategory; unknown ids are ignored."""
        categories = self._categories()
        fields = changes_of(changes)
        target_id = fields.get("category_id")
        if target_id is not None and not any(c.id == target_id for c in categories):
            msg = f"Category {target_id} not found"
            raise BackendError(msg, status_code=404)

        for category in categories:
            for index, subcategory in enumerate(category.subcategories):
                if subcategory.id != subcategory_id:
                    continue
                updated = subcategory.model_copy(update=fields)
                if updated.category_id == category.id:
                    category.subcategories[index] = updated
                else:
                    del category.subcategories[index]
                    for destination in categories:
                        if destination.id == updated.category_id:
                            destination.subcategories.append(updated)
                self._save_categories(categories)
                return updated
        return None

    def delete_subcategory(self, subcategory_id: str) -> None:
        """Remove the subcategory and its notes."""
        categories = self._categories()
        for category in categories:
            category.subcategories = [
                s for s in category.subcategories if s.id != subcategory_id
            ]
        self._save_categories(categories)
        self._save_notes(
            [n for n in self._notes() if n.subcategory_id != subcategory_id],
        )

    # -- notes ---------------------------------------------------------

    def create_note(self, data: NoteCreate) -> Note:
        """Append a new note with a locally generated id."""
        now = utc_now()
        note = Note(
            id=generate_id(),
            title=data.title,
            content=data.content,
            subcategory_id=data.subcategory_id,
            tags=data.tags,
            images=data.images,
            created_at=now,
            updated_at=now,
        )
        notes = self._notes()
        notes.append(note)
        self._save_notes(notes)
        return note

    def update_note(self, note_id: str, changes: NoteUpdate) -> Note | None:
        """Merge ``changes`` into the note and refresh its ``updated_at``."""
        notes = self._notes()
        for index, note in enumerate(notes):
            if note.id == note_id:
                updated = note.model_copy(
                    update={
                        **changes_of(changes),
                        "updated_at": next_timestamp(note.updated_at),
                    },
                )
                notes[index] = updated
                self._save_notes(notes)
                return updated
        return None

    def delete_note(self, note_id: str) -> None:
        """Remove a note."""
        self._save_notes([n for n in self._notes() if n.id != note_id])

    # -- images --------------------------------------------------------

    def upload_image(self, data: bytes, filename: str, content_type: str) -> str:
        """Store the image inline and return its generated id."""
        image_id = generate_image_id()
        with _storage_errors(f"save image {filename}"):
            self.kv.set_item(image_key(image_id), to_data_url(data, content_type))
        logger.info("Stored image %s (%d bytes)", image_id, len(data))
        return image_id

    def delete_image(self, reference: str) -> None:
        """Remove an inline image by id."""
        with _storage_errors(f"delete image {reference}"):
            self.kv.remove_item(image_key(reference))

    def get_image(self, image_id: str) -> str | None:
        """Return the data URL stored for ``image_id``."""
        with _storage_errors(f"load image {image_id}"):
            return self.kv.get_item(image_key(image_id))

    # -- search and maintenance ---------------------------------------

    def search_notes(self, query: str, category_id: str | None = None) -> list[Note]:
        """Scan every stored note for ``query``."""
        scope = None
        if category_id:
            scope = subcategory_ids_of(self._categories(), category_id)
        return filter_notes(self._notes(), query, scope=scope)

    def seed_sample_data(self) -> bool:
        """Load the sample dataset into an empty store.

        Returns:
            True when data was written, False if the store already had data.

        """
        if self._categories() or self._notes():
            return False
        categories, notes = create_sample_data()
        self._save_categories(categories)
        self._save_notes(notes)
        logger.info(
            "Seeded %d categories and %d notes",
            len(categories),
            len(notes),
        )
        return True

    def clear_all(self) -> None:
        """Remove every stored key, images included."""
        with _storage_errors("clear local storage"):
            self.kv.clear()
