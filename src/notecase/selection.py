"""Navigation state: selected category, subcategory, note and active filters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from .models import SelectionState, normalize_tags
from .storage import STATE_KEY

if TYPE_CHECKING:
    from .storage import LocalKeyValueStore

logger = logging.getLogger(__name__)


class SelectionStore:
    """Hold the selection and enforce hierarchical invalidation.

    Selecting a category clears the subcategory and note; selecting a
    subcategory clears the note. With a ``kv_store`` every change is saved
    under ``noteapp_state``; without one the state lives in memory only.
    """

    def __init__(self, kv_store: LocalKeyValueStore | None = None) -> None:
        self.kv = kv_store
        self._state = SelectionState()

    @property
    def state(self) -> SelectionState:
        """A copy of the current state."""
        return self._state.model_copy(deep=True)

    @property
    def selected_category_id(self) -> str | None:
        return self._state.selected_category_id

    @property
    def selected_subcategory_id(self) -> str | None:
        return self._state.selected_subcategory_id

    @property
    def selected_note_id(self) -> str | None:
        return self._state.selected_note_id

    @property
    def search_query(self) -> str:
        return self._state.search_query

    @property
    def selected_tags(self) -> list[str]:
        return list(self._state.selected_tags)

    def load(self) -> None:
        """Restore persisted state; corrupt or missing state resets to empty."""
        if self.kv is None:
            return
        raw = self.kv.get_json(STATE_KEY)
        if raw is None:
            return
        try:
            self._state = SelectionState.model_validate(raw)
        except ValidationError as exc:
            logger.error("Ignoring malformed selection state: %s", exc)  # noqa: TRY400
            self._state = SelectionState()

    def _update(self, **changes: object) -> None:
        self._state = self._state.model_copy(update=changes)
        if self.kv is not None:
            self.kv.set_json(STATE_KEY, self._state.model_dump(mode="json"))

    def select_category(self, category_id: str | None) -> None:
        self._update(
            selected_category_id=category_id,
            selected_subcategory_id=None,
            selected_note_id=None,
        )

    def select_subcategory(self, subcategory_id: str | None) -> None:
        self._update(selected_subcategory_id=subcategory_id, selected_note_id=None)

    def select_note(self, note_id: str | None) -> None:
        self._update(selected_note_id=note_id)

    def set_search_query(self, query: str) -> None:
        self._update(search_query=query)

    def set_selected_tags(self, tags: list[str]) -> None:
        self._update(selected_tags=normalize_tags(tags))

    def toggle_tag(self, tag: str) -> None:
        """Add ``tag`` to the filters, or remove it when already active."""
        tags = self.selected_tags
        tag = tag.strip()
        if tag in tags:
            tags.remove(tag)
        else:
            tags.append(tag)
        self.set_selected_tags(tags)

    def clear_filters(self) -> None:
        """Reset the search text and tag filters."""
        self._update(search_query="", selected_tags=[])

    def reset(self) -> None:
        """Clear every selection and filter."""
        self._state = SelectionState()
        if self.kv is not None:
            self.kv.remove_item(STATE_KEY)

    def prune(
        self,
        category_ids: set[str],
        subcategory_ids: set[str],
        note_ids: set[str],
    ) -> None:
        """Drop selections that point at entities which no longer exist."""
        state = self._state
        if state.selected_category_id and state.selected_category_id not in category_ids:
            self.select_category(None)
        elif (
            state.selected_subcategory_id
            and state.selected_subcategory_id not in subcategory_ids
        ):
            self.select_subcategory(None)
        elif state.selected_note_id and state.selected_note_id not in note_ids:
            self.select_note(None)
