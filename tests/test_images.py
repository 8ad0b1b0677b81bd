"""Tests for image validation and encoding."""

import re

import pytest

from notecase.errors import ImageValidationError, InputValidationError
from notecase.images import (
    MAX_IMAGE_BYTES,
    from_data_url,
    generate_image_id,
    to_data_url,
    validate_image,
)


@pytest.mark.parametrize(
    ("content_type", "filename", "expected"),
    [
        ("image/jpeg", None, "image/jpeg"),
        ("IMAGE/PNG; charset=binary", None, "image/png"),
        (None, "photo.jpg", "image/jpeg"),
        (None, "anim.gif", "image/gif"),
    ],
)
def test_allowed_types(
    content_type: str | None,
    filename: str | None,
    expected: str,
) -> None:
    """Declared or guessed types in the allow-list are accepted."""
    assert validate_image(b"x", content_type, filename) == expected


def test_size_ceiling_is_inclusive() -> None:
    """Exactly 10 MB passes; one byte more is refused."""
    validate_image(b"0" * MAX_IMAGE_BYTES, "image/png")
    with pytest.raises(ImageValidationError, match="smaller than 10MB"):
        validate_image(b"0" * (MAX_IMAGE_BYTES + 1), "image/png")


@pytest.mark.parametrize(
    ("content_type", "filename"),
    [("image/svg+xml", None), (None, "notes.txt"), (None, None)],
)
def test_unsupported_types(content_type: str | None, filename: str | None) -> None:
    """Anything outside the allow-list is a validation error."""
    with pytest.raises(InputValidationError, match="Invalid file type"):
        validate_image(b"x", content_type, filename)


def test_image_ids_and_data_urls() -> None:
    """Generated ids follow img_<ms>_<base36>; data URLs decode back."""
    assert re.fullmatch(r"img_\d+_[0-9a-z]{9}", generate_image_id())
    assert generate_image_id() != generate_image_id()

    url = to_data_url(b"\x00\x01", "image/png")
    assert url == "data:image/png;base64,AAE="
    assert from_data_url(url) == ("image/png", b"\x00\x01")
    with pytest.raises(ValueError, match="Not a base64 data URL"):
        from_data_url("https://example.test/a.png")
