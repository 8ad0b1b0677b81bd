"""Tests for the local key/value store."""

import pytest

from notecase.storage import (
    CATEGORIES_KEY,
    NOTES_KEY,
    LocalKeyValueStore,
    image_key,
)


def test_set_get_remove_item(kv_store: LocalKeyValueStore) -> None:
    """Values round through set/get and disappear on remove."""
    assert kv_store.get_item(NOTES_KEY) is None

    kv_store.set_item(NOTES_KEY, "[]")
    assert kv_store.get_item(NOTES_KEY) == "[]"

    kv_store.remove_item(NOTES_KEY)
    assert kv_store.get_item(NOTES_KEY) is None
    # removing a missing key is a no-op
    kv_store.remove_item(NOTES_KEY)


def test_json_helpers_and_corrupt_values(kv_store: LocalKeyValueStore) -> None:
    """Corrupt JSON reads as the default instead of raising."""
    kv_store.set_json(CATEGORIES_KEY, [{"id": "c1"}])
    assert kv_store.get_json(CATEGORIES_KEY) == [{"id": "c1"}]

    kv_store.set_item(CATEGORIES_KEY, "{not json")
    assert kv_store.get_json(CATEGORIES_KEY, []) == []


def test_keys_and_clear(kv_store: LocalKeyValueStore) -> None:
    """Clear removes every notecase key, images included."""
    kv_store.set_item(NOTES_KEY, "[]")
    kv_store.set_item(image_key("img_1_abc"), "data:image/png;base64,AA==")
    kv_store.set_item("unrelated", "keep")

    assert kv_store.keys() == sorted(
        [NOTES_KEY, image_key("img_1_abc"), "unrelated"],
    )

    kv_store.clear()
    assert kv_store.keys() == ["unrelated"]


def test_unsafe_keys_are_rejected(kv_store: LocalKeyValueStore) -> None:
    """Keys cannot escape the store root."""
    with pytest.raises(ValueError, match="Invalid key"):
        kv_store.set_item("../escape", "x")
    with pytest.raises(ValueError, match="Invalid image_id"):
        image_key("a/b")
