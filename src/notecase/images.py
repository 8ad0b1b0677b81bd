"""Image validation and encoding helpers."""

from __future__ import annotations

import base64
import mimetypes
import secrets
import string

from .errors import ImageValidationError
from .utils import epoch_millis

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
MAX_IMAGE_BYTES = 10 * 1024 * 1024
MAX_IMAGES_PER_NOTE = 10
_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_SUFFIX_LENGTH = 9


def resolve_content_type(content_type: str | None, filename: str | None) -> str | None:
    """Return the declared content type, else one guessed from ``filename``."""
    if content_type:
        return content_type.split(";", 1)[0].strip().lower()
    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        return guessed
    return None


def validate_image(
    data: bytes,
    content_type: str | None = None,
    filename: str | None = None,
) -> str:
    """Check an image against the allowed types and the size ceiling.

    Args:
        data: Raw image bytes.
        content_type: Declared MIME type, if known.
        filename: Original file name, used to guess the type when undeclared.

    Returns:
        The resolved MIME type.

    Raises:
        ImageValidationError: If the type is unsupported or the payload is
            larger than ``MAX_IMAGE_BYTES``.

    """
    resolved = resolve_content_type(content_type, filename)
    if resolved not in ALLOWED_IMAGE_TYPES:
        msg = "Invalid file type. Please upload JPG, PNG, GIF, or WebP images."
        raise ImageValidationError(msg)
    if len(data) > MAX_IMAGE_BYTES:
        msg = "File too large. Please upload images smaller than 10MB."
        raise ImageValidationError(msg)
    return resolved


def generate_image_id() -> str:
    """Return a new image id of the form ``img_<epoch-ms>_<9 base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
    return f"img_{epoch_millis()}_{suffix}"


def to_data_url(data: bytes, content_type: str) -> str:
    """Encode ``data`` as an inline base64 data URL."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def from_data_url(data_url: str) -> tuple[str, bytes]:
    """Decode a base64 data URL into its content type and bytes.

    Raises:
        ValueError: If ``data_url`` is not a base64 data URL.

    """
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        msg = "Not a base64 data URL"
        raise ValueError(msg)
    content_type = header[len("data:") : -len(";base64")]
    return content_type, base64.b64decode(payload)
