"""Tests for the local key/value backend."""

from notecase.backends.local import LocalBackend
from notecase.images import from_data_url
from notecase.models import CategoryUpdate, NoteCreate, NoteUpdate, SubcategoryUpdate
from notecase.storage import NOTES_KEY, LocalKeyValueStore


def test_category_crud_keeps_insertion_order(kv_store: LocalKeyValueStore) -> None:
    """Categories are returned in insertion order and updated in place."""
    backend = LocalBackend(kv_store)
    work = backend.create_category("Work", "#3b82f6")
    home = backend.create_category("Home", "#10b981")

    assert [c.name for c in backend.list_categories()] == ["Work", "Home"]

    renamed = backend.update_category(work.id, CategoryUpdate(name="Office"))
    assert renamed is not None
    assert renamed.name == "Office"
    assert renamed.color == "#3b82f6"
    assert [c.name for c in backend.list_categories()] == ["Office", "Home"]

    assert backend.update_category("missing", CategoryUpdate(name="x")) is None

    backend.delete_category(home.id)
    assert [c.id for c in backend.list_categories()] == [work.id]


def test_delete_category_cascades(local_backend: LocalBackend) -> None:
    """Deleting a category removes its subcategories and their notes."""
    work = local_backend.create_category("Work", "#3b82f6")
    meetings = local_backend.create_subcategory("Meetings", work.id)
    other = local_backend.create_category("Other", "#000000")
    misc = local_backend.create_subcategory("Misc", other.id)
    local_backend.create_note(
        NoteCreate(title="Standup", subcategory_id=meetings.id, tags=["daily"]),
    )
    keep = local_backend.create_note(NoteCreate(title="Keep", subcategory_id=misc.id))

    local_backend.delete_category(work.id)

    categories = local_backend.list_categories()
    assert [c.id for c in categories] == [other.id]
    assert all(s.category_id != work.id for c in categories for s in c.subcategories)
    assert [n.id for n in local_backend.list_notes()] == [keep.id]


def test_subcategory_move_and_delete(local_backend: LocalBackend) -> None:
    """Moving a subcategory re-nests it; deleting removes its notes."""
    first = local_backend.create_category("First", "#111111")
    second = local_backend.create_category("Second", "#222222")
    sub = local_backend.create_subcategory("Drafts", first.id)
    local_backend.create_note(NoteCreate(title="Draft", subcategory_id=sub.id))

    moved = local_backend.update_subcategory(
        sub.id,
        SubcategoryUpdate(category_id=second.id),
    )
    assert moved is not None
    assert moved.category_id == second.id
    by_id = {c.id: c for c in local_backend.list_categories()}
    assert by_id[first.id].subcategories == []
    assert [s.id for s in by_id[second.id].subcategories] == [sub.id]

    local_backend.delete_subcategory(sub.id)
    assert local_backend.list_notes() == []
    assert all(not c.subcategories for c in local_backend.list_categories())


def test_update_note_refreshes_updated_at(local_backend: LocalBackend) -> None:
    """Every update moves updated_at strictly forward."""
    category = local_backend.create_category("Work", "#3b82f6")
    sub = local_backend.create_subcategory("Meetings", category.id)
    note = local_backend.create_note(NoteCreate(title="Standup", subcategory_id=sub.id))

    updated = local_backend.update_note(note.id, NoteUpdate(content="<p>notes</p>"))
    assert updated is not None
    assert updated.updated_at > note.updated_at
    assert updated.created_at == note.created_at
    assert updated.title == "Standup"

    assert local_backend.update_note("missing", NoteUpdate(title="x")) is None


def test_images_are_stored_inline(local_backend: LocalBackend) -> None:
    """Uploaded images are data URLs keyed by a generated id."""
    image_id = local_backend.upload_image(b"\x89PNG", "a.png", "image/png")
    assert image_id.startswith("img_")

    stored = local_backend.get_image(image_id)
    assert stored is not None
    assert from_data_url(stored) == ("image/png", b"\x89PNG")

    local_backend.delete_image(image_id)
    assert local_backend.get_image(image_id) is None


def test_search_with_category_scope(local_backend: LocalBackend) -> None:
    """Search honours the optional category scope."""
    work = local_backend.create_category("Work", "#3b82f6")
    home = local_backend.create_category("Home", "#10b981")
    work_sub = local_backend.create_subcategory("Plans", work.id)
    home_sub = local_backend.create_subcategory("Plans", home.id)
    a = local_backend.create_note(NoteCreate(title="Plan A", subcategory_id=work_sub.id))
    b = local_backend.create_note(NoteCreate(title="Plan B", subcategory_id=home_sub.id))

    assert {n.id for n in local_backend.search_notes("plan")} == {a.id, b.id}
    assert [n.id for n in local_backend.search_notes("plan", work.id)] == [a.id]
    assert local_backend.search_notes("absent") == []


def test_corrupt_notes_read_as_empty(
    local_backend: LocalBackend,
    local_kv: LocalKeyValueStore,
) -> None:
    """Malformed persisted data is discarded rather than raising."""
    local_kv.set_item(NOTES_KEY, "not json")
    assert local_backend.list_notes() == []
    local_kv.set_json(NOTES_KEY, [{"unexpected": True}])
    assert local_backend.list_notes() == []


def test_seed_sample_data_only_into_empty_store(local_backend: LocalBackend) -> None:
    """Sample data fills an empty store once."""
    assert local_backend.seed_sample_data() is True
    categories = local_backend.list_categories()
    assert len(categories) == 3
    assert sum(len(c.subcategories) for c in categories) == 6
    assert len(local_backend.list_notes()) == 5

    assert local_backend.seed_sample_data() is False

    local_backend.clear_all()
    assert local_backend.list_categories() == []
    assert local_backend.list_notes() == []
