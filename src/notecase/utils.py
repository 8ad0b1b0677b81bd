"""Utility functions for notecase."""

from __future__ import annotations

import re
import uuid
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import fsspec

if TYPE_CHECKING:
    from fsspec import AbstractFileSystem

ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
TIMESTAMP_STEP = timedelta(microseconds=1)


def validate_id(identifier: str, name: str) -> str:
    """Validate that an identifier contains only safe characters.

    Args:
        identifier: The string to validate.
        name: The name of the field (for error messages).

    Returns:
        The validated identifier.

    Raises:
        ValueError: If the identifier contains invalid characters.

    """
    if not identifier or not ID_PATTERN.match(identifier):
        msg = (
            f"Invalid {name}: {identifier}. "
            "Must be alphanumeric, hyphens, or underscores."
        )
        raise ValueError(msg)
    return str(identifier)


def generate_id() -> str:
    """Return a new opaque entity identifier."""
    return uuid.uuid4().hex


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from storage."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def next_timestamp(previous: datetime | None) -> datetime:
    """Return a timestamp strictly later than ``previous``.

    Clocks with coarse resolution can return the same instant twice; in that
    case the previous value is advanced by one microsecond.
    """
    now = utc_now()
    if previous is None:
        return now
    previous = ensure_utc(previous)
    if now > previous:
        return now
    return previous + TIMESTAMP_STEP


def epoch_millis(moment: datetime | None = None) -> int:
    """Return ``moment`` (default: now) as integer milliseconds since the epoch."""
    return int((moment or utc_now()).timestamp() * 1000)


def get_fs_and_path(
    url: str,
    fs: AbstractFileSystem | None = None,
) -> tuple[AbstractFileSystem, str]:
    """Resolve an fsspec filesystem and root path from ``url``.

    Args:
        url: Local path or fsspec URL (``memory://bucket``, ``file:///tmp/x``).
        fs: Optional pre-built filesystem; ``url`` is then used as-is.

    Returns:
        Tuple of filesystem and path within that filesystem.

    """
    if fs is not None:
        return fs, url.rstrip("/") or "/"
    fs_obj, path = fsspec.core.url_to_fs(url)
    return fs_obj, path.rstrip("/") or "/"


def fs_join(base: str, *parts: str) -> str:
    """Join fsspec path components using forward slashes."""
    cleaned = [base.rstrip("/")]
    cleaned.extend(part.strip("/") for part in parts if part)
    return "/".join(cleaned)


def fs_exists(fs: AbstractFileSystem, path: str) -> bool:
    """Return True when ``path`` exists on ``fs``."""
    return bool(fs.exists(path))
