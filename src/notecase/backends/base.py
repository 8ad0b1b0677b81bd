"""The persistence contract shared by every backend variant."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from notecase.models import (
        Category,
        CategoryUpdate,
        Note,
        NoteCreate,
        NoteUpdate,
        Subcategory,
        SubcategoryUpdate,
    )


class Backend(ABC):
    """Durable storage for categories, subcategories, notes and images.

    Update operations return None when the id is unknown; there is no
    uniform not-found signal across variants. Failures raise
    ``BackendError`` (or a subclass) and are never retried.
    """

    name: str = "backend"

    @abstractmethod
    def list_categories(self) -> list[Category]:
        """Return categories with their nested subcategories."""

    @abstractmethod
    def list_notes(self) -> list[Note]:
        """Return every note visible to the owner."""

    @abstractmethod
    def create_category(self, name: str, color: str) -> Category:
        """Persist a new category."""

    @abstractmethod
    def update_category(
        self,
        category_id: str,
        changes: CategoryUpdate,
    ) -> Category | None:
        """Apply the explicitly set fields of ``changes``."""

    @abstractmethod
    def delete_category(self, category_id: str) -> None:
        """Delete a category together with its subcategories and their notes."""

    @abstractmethod
    def create_subcategory(self, name: str, category_id: str) -> Subcategory:
        """Persist a new subcategory under ``category_id``."""

    @abstractmethod
    def update_subcategory(
        self,
        subcategory_id: str,
        changes: SubcategoryUpdate,
    ) -> Subcategory | None:
        """Apply the explicitly set fields of ``changes``."""

    @abstractmethod
    def delete_subcategory(self, subcategory_id: str) -> None:
        """Delete a subcategory together with its notes."""

    @abstractmethod
    def create_note(self, data: NoteCreate) -> Note:
        """Persist a new note."""

    @abstractmethod
    def update_note(self, note_id: str, changes: NoteUpdate) -> Note | None:
        """Apply ``changes`` and refresh the note's ``updated_at``."""

    @abstractmethod
    def delete_note(self, note_id: str) -> None:
        """Delete a single note."""

    @abstractmethod
    def upload_image(
        self,
        data: bytes,
        filename: str,
        content_type: str,
    ) -> str:
        """Store an image and return the reference notes should keep."""

    @abstractmethod
    def delete_image(self, reference: str) -> None:
        """Remove a stored image."""

    @abstractmethod
    def search_notes(
        self,
        query: str,
        category_id: str | None = None,
    ) -> list[Note]:
        """Return notes whose title, content or tags contain ``query``."""
