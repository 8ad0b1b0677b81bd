"""In-memory note/category cache mediating every write through the active backend.

A mutation is validated first, then sent to the backend, and only applied to
the cache after the backend call returned. A failing call leaves the cache
untouched and lets the error propagate to the action boundary.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import InputValidationError
from .images import MAX_IMAGES_PER_NOTE, validate_image
from .models import (
    DEFAULT_CATEGORY_COLOR,
    Category,
    CategoryUpdate,
    Note,
    NoteCreate,
    NoteUpdate,
    SelectionState,
    Subcategory,
    SubcategoryUpdate,
    changes_of,
)
from .search import aggregate_tags, filter_notes, notes_with_any_tag, subcategory_ids_of
from .utils import next_timestamp

if TYPE_CHECKING:
    from .backends.base import Backend
    from .selector import DataSourceSelector

logger = logging.getLogger(__name__)


def _require_text(value: str | None, label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        msg = f"{label} is required"
        raise InputValidationError(msg)
    return cleaned


class NoteStore:
    """Cached categories and notes of the active data source."""

    def __init__(self, selector: DataSourceSelector) -> None:
        """Read and write through ``selector``'s active backend."""
        self.selector = selector
        self.categories: list[Category] = []
        self.notes: list[Note] = []
        self.is_loading = False

    @property
    def backend(self) -> Backend:
        """The active backend."""
        return self.selector.backend()

    def load(self) -> None:
        """Replace the cache with the active backend's data."""
        self.is_loading = True
        try:
            backend = self.backend
            categories = backend.list_categories()
            notes = backend.list_notes()
        finally:
            self.is_loading = False
        self.categories = categories
        self.notes = notes
        logger.info(
            "Loaded %d categories and %d notes from %s",
            len(categories),
            len(notes),
            backend.name,
        )

    def clear(self) -> None:
        """Drop the cached data, e.g. on logout."""
        self.categories = []
        self.notes = []

    # -- lookups -------------------------------------------------------

    def find_category(self, category_id: str) -> Category | None:
        """Return the cached category with ``category_id``."""
        return next((c for c in self.categories if c.id == category_id), None)

    def find_subcategory(self, subcategory_id: str) -> Subcategory | None:
        """Return the cached subcategory with ``subcategory_id``."""
        for category in self.categories:
            for subcategory in category.subcategories:
                if subcategory.id == subcategory_id:
                    return subcategory
        return None

    def find_note(self, note_id: str) -> Note | None:
        """Return the cached note with ``note_id``."""
        return next((n for n in self.notes if n.id == note_id), None)

    def _existing_category(self, category_id: str) -> Category:
        category = self.find_category(category_id)
        if category is None:
            msg = f"Category {category_id} does not exist"
            raise InputValidationError(msg)
        return category

    def _existing_subcategory(self, subcategory_id: str) -> Subcategory:
        subcategory = self.find_subcategory(subcategory_id)
        if subcategory is None:
            msg = f"Subcategory {subcategory_id} does not exist"
            raise InputValidationError(msg)
        return subcategory

    def _existing_note(self, note_id: str) -> Note:
        note = self.find_note(note_id)
        if note is None:
            msg = f"Note {note_id} does not exist"
            raise InputValidationError(msg)
        return note

    # -- categories ----------------------------------------------------

    def create_category(self, name: str, color: str = DEFAULT_CATEGORY_COLOR) -> Category:
        """Create a category and append it to the cache.

        Raises:
            InputValidationError: If ``name`` is blank.

        """
        name = _require_text(name, "Category name")
        category = self.backend.create_category(name, color or DEFAULT_CATEGORY_COLOR)
        self.categories.append(category)
        return category

    def update_category(self, category_id: str, changes: CategoryUpdate) -> Category:
        """Rename or recolor a category."""
        current = self._existing_category(category_id)
        fields = changes_of(changes)
        if not fields:
            return current
        if "name" in fields:
            fields["name"] = _require_text(fields["name"], "Category name")
        returned = self.backend.update_category(category_id, CategoryUpdate(**fields))
        updated = returned or current.model_copy(update=fields)
        self.categories = [updated if c.id == category_id else c for c in self.categories]
        return updated

    def delete_category(self, category_id: str) -> None:
        """Delete a category and reload, since the backend owns the cascade."""
        self.backend.delete_category(category_id)
        self.load()

    # -- subcategories -------------------------------------------------

    def create_subcategory(self, name: str, category_id: str) -> Subcategory:
        """Create a subcategory under an existing category."""
        name = _require_text(name, "Subcategory name")
        parent = self._existing_category(category_id)
        subcategory = self.backend.create_subcategory(name, parent.id)
        parent.subcategories.append(subcategory)
        return subcategory

    def update_subcategory(
        self,
        subcategory_id: str,
        changes: SubcategoryUpdate,
    ) -> Subcategory:
        """Rename a subcategory or move it to another category."""
        current = self._existing_subcategory(subcategory_id)
        fields = changes_of(changes)
        if not fields:
            return current
        if "name" in fields:
            fields["name"] = _require_text(fields["name"], "Subcategory name")
        if "category_id" in fields:
            self._existing_category(fields["category_id"])
        returned = self.backend.update_subcategory(
            subcategory_id,
            SubcategoryUpdate(**fields),
        )
        updated = returned or current.model_copy(update=fields)
        for category in self.categories:
            category.subcategories = [
                s for s in category.subcategories if s.id != subcategory_id
            ]
            if category.id == updated.category_id:
                category.subcategories.append(updated)
        return updated

    def delete_subcategory(self, subcategory_id: str) -> None:
        """Delete a subcategory and reload."""
        self.backend.delete_subcategory(subcategory_id)
        self.load()

    # -- notes ---------------------------------------------------------

    def create_note(self, data: NoteCreate) -> Note:
        """Create a note under an existing subcategory.

        Raises:
            InputValidationError: If the title is blank, the subcategory is
                unknown or too many images are referenced.

        """
        title = _require_text(data.title, "Note title")
        self._existing_subcategory(data.subcategory_id)
        if len(data.images) > MAX_IMAGES_PER_NOTE:
            msg = f"A note can hold at most {MAX_IMAGES_PER_NOTE} images"
            raise InputValidationError(msg)
        note = self.backend.create_note(data.model_copy(update={"title": title}))
        self.notes.append(note)
        return note

    def update_note(self, note_id: str, changes: NoteUpdate) -> Note:
        """Apply ``changes`` to a note.

        An update with no fields set returns the cached note untouched and
        makes no backend call.
        """
        current = self._existing_note(note_id)
        fields = changes_of(changes)
        if not fields:
            return current
        if "title" in fields:
            fields["title"] = _require_text(fields["title"], "Note title")
        if "subcategory_id" in fields:
            self._existing_subcategory(fields["subcategory_id"])
        if len(fields.get("images", ())) > MAX_IMAGES_PER_NOTE:
            msg = f"A note can hold at most {MAX_IMAGES_PER_NOTE} images"
            raise InputValidationError(msg)
        returned = self.backend.update_note(note_id, NoteUpdate(**fields))
        stamp = next_timestamp(current.updated_at)
        if returned is None:
            updated = current.model_copy(update={**fields, "updated_at": stamp})
        elif returned.updated_at <= current.updated_at:
            updated = returned.model_copy(update={"updated_at": stamp})
        else:
            updated = returned
        self.notes = [updated if n.id == note_id else n for n in self.notes]
        return updated

    def delete_note(self, note_id: str) -> None:
        """Delete a note and drop it from the cache."""
        self.backend.delete_note(note_id)
        self.notes = [n for n in self.notes if n.id != note_id]

    # -- images --------------------------------------------------------

    def attach_image(
        self,
        note_id: str,
        data: bytes,
        filename: str,
        content_type: str | None = None,
    ) -> Note:
        """Validate, upload and attach an image to a note.

        Raises:
            ImageValidationError: Before any backend call, if the image is too
                large or of an unsupported type.
            InputValidationError: If the note is unknown or already full.

        """
        note = self._existing_note(note_id)
        resolved = validate_image(data, content_type, filename)
        if len(note.images) >= MAX_IMAGES_PER_NOTE:
            msg = f"A note can hold at most {MAX_IMAGES_PER_NOTE} images"
            raise InputValidationError(msg)
        reference = self.backend.upload_image(data, filename, resolved)
        return self.update_note(note_id, NoteUpdate(images=[*note.images, reference]))

    def remove_image(self, note_id: str, reference: str) -> Note:
        """Delete an image and drop its reference from the note."""
        note = self._existing_note(note_id)
        self.backend.delete_image(reference)
        remaining = [image for image in note.images if image != reference]
        if remaining == note.images:
            return note
        return self.update_note(note_id, NoteUpdate(images=remaining))

    # -- queries -------------------------------------------------------

    def notes_by_subcategory(self, subcategory_id: str) -> list[Note]:
        """Return cached notes in ``subcategory_id``."""
        return [n for n in self.notes if n.subcategory_id == subcategory_id]

    def notes_by_category(self, category_id: str) -> list[Note]:
        """Return cached notes in any subcategory of ``category_id``."""
        members = subcategory_ids_of(self.categories, category_id)
        return [n for n in self.notes if n.subcategory_id in members]

    def notes_by_tags(self, tags: list[str]) -> list[Note]:
        """Return cached notes carrying at least one of ``tags``."""
        return notes_with_any_tag(self.notes, tags)

    def search_notes(self, query: str, category_id: str | None = None) -> list[Note]:
        """Search the cache with the same matcher every backend uses."""
        scope = subcategory_ids_of(self.categories, category_id) if category_id else None
        return filter_notes(self.notes, query, scope=scope)

    def all_tags(self) -> list[str]:
        """Return every tag in use, deduplicated and sorted."""
        return aggregate_tags(self.notes)

    def visible_notes(self, selection: SelectionState) -> list[Note]:
        """Return the notes the current selection shows, newest first.

        Active search text or tag filters take precedence over hierarchical
        navigation and apply across every category.
        """
        if selection.search_query or selection.selected_tags:
            notes = self.notes
            if selection.search_query:
                notes = filter_notes(notes, selection.search_query)
            if selection.selected_tags:
                notes = notes_with_any_tag(notes, selection.selected_tags)
        elif selection.selected_subcategory_id:
            notes = self.notes_by_subcategory(selection.selected_subcategory_id)
        elif selection.selected_category_id:
            notes = self.notes_by_category(selection.selected_category_id)
        else:
            notes = self.notes
        return sorted(notes, key=lambda n: n.updated_at, reverse=True)
