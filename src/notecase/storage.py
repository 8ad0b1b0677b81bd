"""Local key/value store implemented via fsspec.

Every key is one file under the store root, holding a string value. This
mirrors browser local storage: synchronous, single-process, and bounded
only by whatever quota the underlying filesystem imposes.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from .utils import fs_exists, fs_join, get_fs_and_path, validate_id

if TYPE_CHECKING:
    from fsspec import AbstractFileSystem

logger = logging.getLogger(__name__)

KEY_PREFIX = "noteapp_"
CATEGORIES_KEY = "noteapp_categories"
NOTES_KEY = "noteapp_notes"
STATE_KEY = "noteapp_state"
TOKEN_KEY = "noteapp_token"  # noqa: S105
AUTH_KEY = "noteapp_auth"
USERS_KEY = "noteapp_users"
IMAGE_KEY_PREFIX = "noteapp_image_"


def image_key(image_id: str) -> str:
    """Return the storage key for ``image_id``."""
    return f"{IMAGE_KEY_PREFIX}{validate_id(image_id, 'image_id')}"


class LocalKeyValueStore:
    """String key/value store persisted as one fsspec file per key."""

    def __init__(
        self,
        root: str,
        *,
        fs: AbstractFileSystem | None = None,
    ) -> None:
        """Open (and create if needed) the store rooted at ``root``.

        Args:
            root: Local path or fsspec URL of the store directory.
            fs: Optional filesystem; when given, ``root`` is a path on it.

        """
        self.fs, self.root = get_fs_and_path(root, fs)
        if not fs_exists(self.fs, self.root):
            self.fs.makedirs(self.root, exist_ok=True)

    def _path(self, key: str) -> str:
        return fs_join(self.root, validate_id(key, "key"))

    def get_item(self, key: str) -> str | None:
        """Return the value stored under ``key`` or None."""
        path = self._path(key)
        if not fs_exists(self.fs, path):
            return None
        with self.fs.open(path, "r", encoding="utf-8") as handle:
            return handle.read()

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        with self.fs.open(self._path(key), "w", encoding="utf-8") as handle:
            handle.write(value)

    def remove_item(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""
        path = self._path(key)
        if fs_exists(self.fs, path):
            self.fs.rm(path)

    def keys(self) -> list[str]:
        """Return every stored key, sorted."""
        if not fs_exists(self.fs, self.root):
            return []
        entries = self.fs.ls(self.root, detail=False)
        return sorted(str(entry).rstrip("/").split("/")[-1] for entry in entries)

    def get_json(self, key: str, default: Any = None) -> Any:  # noqa: ANN401
        """Decode the JSON value under ``key``.

        Unreadable or corrupt values are logged and reported as ``default``.
        """
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("Could not decode value stored under %s: %s", key, exc)  # noqa: TRY400
            return default

    def set_json(self, key: str, value: Any) -> None:  # noqa: ANN401
        """Encode ``value`` as JSON and store it under ``key``."""
        self.set_item(key, json.dumps(value))

    def clear(self, prefix: str = KEY_PREFIX) -> None:
        """Remove every key starting with ``prefix``."""
        for key in self.keys():
            if key.startswith(prefix):
                self.remove_item(key)
