"""User-facing action boundary.

Every operation the interface triggers goes through ``NoteActions``. Errors
stop here: they become error notifications and the action returns None or
False instead of raising.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel

from .errors import ConfigurationError, NotecaseError
from .models import (
    CategoryUpdate,
    NoteCreate,
    NoteUpdate,
    SubcategoryUpdate,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from .auth import Authenticator
    from .models import AuthUser, Category, Note, Subcategory
    from .selection import SelectionStore
    from .selector import DataSource, DataSourceSelector
    from .store import NoteStore

logger = logging.getLogger(__name__)

NotificationLevel = Literal["info", "success", "error", "warning"]

_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Notification(BaseModel):
    """A message shown to the user.

    Blocking notifications must be acknowledged (configuration problems);
    the rest are transient toasts.
    """

    level: NotificationLevel
    title: str
    message: str = ""
    blocking: bool = False


class Notifier:
    """Collect notifications and forward them to listeners."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []
        self.listeners: list[Callable[[Notification], None]] = []

    def notify(
        self,
        level: NotificationLevel,
        title: str,
        message: str = "",
        *,
        blocking: bool = False,
    ) -> Notification:
        notification = Notification(
            level=level,
            title=title,
            message=message,
            blocking=blocking,
        )
        self.notifications.append(notification)
        logger.log(_LOG_LEVELS[level], "%s: %s", title, message)
        for listener in self.listeners:
            listener(notification)
        return notification

    def success(self, title: str, message: str = "") -> Notification:
        return self.notify("success", title, message)

    def error(self, title: str, message: str = "", *, blocking: bool = False) -> Notification:
        return self.notify("error", title, message, blocking=blocking)

    def drain(self) -> list[Notification]:
        """Return and forget every collected notification."""
        drained, self.notifications = self.notifications, []
        return drained


class NoteActions:
    """Wrap store, selector and auth calls with user notifications."""

    def __init__(  # noqa: PLR0913
        self,
        store: NoteStore,
        selection: SelectionStore,
        selector: DataSourceSelector,
        notifier: Notifier | None = None,
        authenticator: Authenticator | None = None,
    ) -> None:
        self.store = store
        self.selection = selection
        self.selector = selector
        self.notifier = notifier or Notifier()
        self.authenticator = authenticator

    def _run[R](
        self,
        failure: str,
        action: Callable[[], R],
        success: str | None = None,
    ) -> R | None:
        try:
            result = action()
        except ConfigurationError as exc:
            self.notifier.error("Configuration required", exc.message, blocking=True)
            return None
        except NotecaseError as exc:
            self.notifier.error(failure, exc.message)
            return None
        if success:
            self.notifier.success(success)
        return result

    def _prune_selection(self) -> None:
        self.selection.prune(
            {c.id for c in self.store.categories},
            {s.id for c in self.store.categories for s in c.subcategories},
            {n.id for n in self.store.notes},
        )

    # -- data source ---------------------------------------------------

    def refresh(self) -> bool:
        """Reload data from the active backend."""

        def _load() -> bool:
            self.store.load()
            self._prune_selection()
            return True

        return bool(self._run("Failed to load data", _load))

    def set_data_source(self, source: DataSource | str) -> bool:
        """Switch to ``source`` and reload; unconfigured sources are refused."""
        previous = self.selector.active
        if self._run("Failed to switch data source", lambda: self.selector.select(source)) is None:
            return False
        if self.selector.active is previous:
            return True
        return self.refresh()

    def toggle_data_source(self) -> DataSource | None:
        """Flip between local storage and the network source, then reload."""
        switched = self._run("Failed to switch data source", self.selector.toggle)
        if switched is None:
            return None
        self.refresh()
        return switched

    # -- auth ----------------------------------------------------------

    def login(self, username: str, password: str) -> AuthUser | None:
        """Log in and load the user's data."""
        if self.authenticator is None:
            self.notifier.error("Login failed", "No authentication is configured")
            return None
        authenticator = self.authenticator
        user = self._run(
            "Login failed",
            lambda: authenticator.login(username, password),
            success="Signed in",
        )
        if user is not None:
            self.refresh()
        return user

    def logout(self) -> None:
        """End the session and clear cached data and selection."""
        if self.authenticator is not None:
            self.authenticator.logout()
        self.store.clear()
        self.selection.reset()
        self.notifier.notify("info", "Signed out")

    # -- categories ----------------------------------------------------

    def create_category(self, name: str, color: str | None = None) -> Category | None:
        args = (name,) if color is None else (name, color)
        return self._run(
            "Failed to create category",
            lambda: self.store.create_category(*args),
            success="Category created",
        )

    def update_category(
        self,
        category_id: str,
        *,
        name: str | None = None,
        color: str | None = None,
    ) -> Category | None:
        changes = CategoryUpdate(name=name, color=color)
        return self._run(
            "Failed to update category",
            lambda: self.store.update_category(category_id, changes),
            success="Category updated",
        )

    def delete_category(self, category_id: str) -> bool:
        def _delete() -> bool:
            self.store.delete_category(category_id)
            self._prune_selection()
            return True

        return bool(
            self._run("Failed to delete category", _delete, success="Category deleted"),
        )

    # -- subcategories -------------------------------------------------

    def create_subcategory(self, name: str, category_id: str) -> Subcategory | None:
        return self._run(
            "Failed to create subcategory",
            lambda: self.store.create_subcategory(name, category_id),
            success="Subcategory created",
        )

    def update_subcategory(
        self,
        subcategory_id: str,
        *,
        name: str | None = None,
        category_id: str | None = None,
    ) -> Subcategory | None:
        changes = SubcategoryUpdate(name=name, category_id=category_id)
        return self._run(
            "Failed to update subcategory",
            lambda: self.store.update_subcategory(subcategory_id, changes),
            success="Subcategory updated",
        )

    def delete_subcategory(self, subcategory_id: str) -> bool:
        def _delete() -> bool:
            self.store.delete_subcategory(subcategory_id)
            self._prune_selection()
            return True

        return bool(
            self._run(
                "Failed to delete subcategory",
                _delete,
                success="Subcategory deleted",
            ),
        )

    # -- notes ---------------------------------------------------------

    def create_note(
        self,
        title: str,
        subcategory_id: str,
        content: str = "",
        tags: list[str] | None = None,
    ) -> Note | None:
        """Create a note and select it."""

        def _create() -> Note:
            note = self.store.create_note(
                NoteCreate(
                    title=title,
                    content=content,
                    subcategory_id=subcategory_id,
                    tags=tags or [],
                ),
            )
            self.selection.select_note(note.id)
            return note

        return self._run("Failed to create note", _create, success="Note created")

    def update_note(self, note_id: str, changes: NoteUpdate) -> Note | None:
        return self._run(
            "Failed to update note",
            lambda: self.store.update_note(note_id, changes),
            success="Note saved",
        )

    def delete_note(self, note_id: str) -> bool:
        def _delete() -> bool:
            self.store.delete_note(note_id)
            if self.selection.selected_note_id == note_id:
                self.selection.select_note(None)
            return True

        return bool(self._run("Failed to delete note", _delete, success="Note deleted"))

    # -- images --------------------------------------------------------

    def attach_image(
        self,
        note_id: str,
        data: bytes,
        filename: str,
        content_type: str | None = None,
    ) -> Note | None:
        return self._run(
            "Failed to upload image",
            lambda: self.store.attach_image(note_id, data, filename, content_type),
            success="Image uploaded",
        )

    def remove_image(self, note_id: str, reference: str) -> Note | None:
        return self._run(
            "Failed to delete image",
            lambda: self.store.remove_image(note_id, reference),
            success="Image deleted",
        )

    # -- navigation ----------------------------------------------------

    def search(self, query: str) -> list[Note]:
        """Set the search text and return the notes now visible."""
        self.selection.set_search_query(query)
        return self.store.visible_notes(self.selection.state)

    def toggle_tag(self, tag: str) -> list[Note]:
        """Toggle a tag filter and return the notes now visible."""
        self.selection.toggle_tag(tag)
        return self.store.visible_notes(self.selection.state)

    def visible_notes(self) -> list[Note]:
        return self.store.visible_notes(self.selection.state)
