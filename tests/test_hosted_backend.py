"""Tests for the hosted relational backend."""

from pathlib import Path

import fsspec
import pytest

from notecase.backends.hosted import HostedBackend, HostedDatabase
from notecase.config import Settings
from notecase.errors import AuthenticationError, BackendError, ConfigurationError
from notecase.models import CategoryUpdate, NoteCreate, NoteUpdate


def test_operations_require_an_owner(database: HostedDatabase) -> None:
    """Without a bound owner every data call is refused."""
    backend = HostedBackend(database)
    with pytest.raises(AuthenticationError, match="User not authenticated"):
        backend.list_categories()

    user = database.register_user("dora", "", "pw")
    backend.bind_owner(user.id)
    assert backend.list_categories() == []


def test_rows_are_scoped_by_owner(
    database: HostedDatabase,
    hosted_backend: HostedBackend,
) -> None:
    """One owner never sees another owner's rows."""
    hosted_backend.create_category("Work", "#3b82f6")

    other = database.register_user("eve", "", "pw")
    other_backend = HostedBackend(database, owner_id=other.id)
    assert other_backend.list_categories() == []
    assert other_backend.list_notes() == []


def test_cascade_delete(hosted_backend: HostedBackend) -> None:
    """Deleting a category removes subcategories and notes explicitly."""
    work = hosted_backend.create_category("Work", "#3b82f6")
    meetings = hosted_backend.create_subcategory("Meetings", work.id)
    hosted_backend.create_note(
        NoteCreate(title="Standup", subcategory_id=meetings.id, tags=["daily"]),
    )

    [listed] = hosted_backend.list_categories()
    assert [s.name for s in listed.subcategories] == ["Meetings"]

    hosted_backend.delete_category(work.id)

    assert hosted_backend.list_categories() == []
    assert hosted_backend.list_notes() == []


def test_create_requires_existing_parent(hosted_backend: HostedBackend) -> None:
    """Creating under an unknown parent fails with a 404."""
    with pytest.raises(BackendError) as excinfo:
        hosted_backend.create_subcategory("Orphan", "missing")
    assert excinfo.value.status_code == 404

    with pytest.raises(BackendError):
        hosted_backend.create_note(NoteCreate(title="x", subcategory_id="missing"))


def test_update_and_ordering(hosted_backend: HostedBackend) -> None:
    """Notes are returned most recently updated first."""
    category = hosted_backend.create_category("Work", "#3b82f6")
    sub = hosted_backend.create_subcategory("Meetings", category.id)
    first = hosted_backend.create_note(NoteCreate(title="First", subcategory_id=sub.id))
    second = hosted_backend.create_note(NoteCreate(title="Second", subcategory_id=sub.id))

    updated = hosted_backend.update_note(first.id, NoteUpdate(tags=["a", "b"]))
    assert updated is not None
    assert updated.updated_at > first.updated_at
    assert updated.tags == ["a", "b"]
    assert [n.id for n in hosted_backend.list_notes()] == [first.id, second.id]

    recolored = hosted_backend.update_category(category.id, CategoryUpdate(color="#000"))
    assert recolored is not None
    assert recolored.color == "#000"
    assert recolored.name == "Work"
    assert hosted_backend.update_note("missing", NoteUpdate(title="x")) is None


def test_search_prefilters_and_refines(hosted_backend: HostedBackend) -> None:
    """SQL prefiltering never yields matches on JSON punctuation."""
    category = hosted_backend.create_category("Work", "#3b82f6")
    sub = hosted_backend.create_subcategory("Meetings", category.id)
    standup = hosted_backend.create_note(
        NoteCreate(title="Standup", content="sync", subcategory_id=sub.id, tags=["daily"]),
    )
    cafe = hosted_backend.create_note(
        NoteCreate(title="Lunch", subcategory_id=sub.id, tags=["café", "lunch"]),
    )
    hosted_backend.create_note(NoteCreate(title="100% done", subcategory_id=sub.id))

    assert [n.id for n in hosted_backend.search_notes("DAILY")] == [standup.id]
    assert [n.id for n in hosted_backend.search_notes("CAFÉ")] == [cafe.id]
    assert hosted_backend.search_notes('", "') == []
    assert [n.title for n in hosted_backend.search_notes("%")] == ["100% done"]
    assert hosted_backend.search_notes("sync", "missing") == []


def test_query_notes_paginates(hosted_backend: HostedBackend) -> None:
    """Offset/limit pages report the total and whether more remain."""
    category = hosted_backend.create_category("Work", "#3b82f6")
    sub = hosted_backend.create_subcategory("Meetings", category.id)
    for index in range(5):
        hosted_backend.create_note(
            NoteCreate(title=f"Note {index}", subcategory_id=sub.id, tags=["t"]),
        )

    page = hosted_backend.query_notes(limit=2, offset=0)
    assert page.total == 5
    assert len(page.notes) == 2
    assert page.has_more is True

    last = hosted_backend.query_notes(limit=2, offset=4)
    assert len(last.notes) == 1
    assert last.has_more is False

    assert hosted_backend.query_notes(tags=["missing"]).total == 0
    assert hosted_backend.query_notes(category_id=category.id).total == 5


def test_images_live_in_the_bucket(
    hosted_backend: HostedBackend,
    bucket_url: str,
) -> None:
    """Uploads return public URLs and delete by URL or path."""
    public = hosted_backend.database.public_base_url
    url = hosted_backend.upload_image(b"GIF89a", "my photo.gif", "image/gif")
    assert public == "https://cdn.example.test/notes"
    assert url.startswith(f"{public}/{hosted_backend.owner_id}/")
    assert url.endswith("_my_photo.gif")

    fs, root = fsspec.core.url_to_fs(bucket_url)
    path = url.removeprefix(f"{public}/")
    assert fs.cat_file(f"{root}/{path}") == b"GIF89a"

    hosted_backend.delete_image(url)
    assert not fs.exists(f"{root}/{path}")

    with pytest.raises(BackendError) as excinfo:
        hosted_backend.delete_image("someone-else/1_x.png")
    assert excinfo.value.status_code == 403


def test_user_profiles_and_tokens(database: HostedDatabase) -> None:
    """Passwords are verified against hashes; tokens resolve to users."""
    user = database.register_user("frank", "frank@example.test", "pw")
    with pytest.raises(BackendError) as excinfo:
        database.register_user("frank", "", "other")
    assert excinfo.value.status_code == 409

    assert database.authenticate("frank", "wrong") is None
    authed = database.authenticate("frank", "pw")
    assert authed is not None
    assert authed.id == user.id

    token = database.issue_token(user.id)
    resolved = database.resolve_token(token)
    assert resolved is not None
    assert resolved.username == "frank"

    database.revoke_token(token)
    assert database.resolve_token(token) is None


def test_from_settings_requires_credentials() -> None:
    """Connecting without configuration is a configuration error."""
    with pytest.raises(ConfigurationError):
        HostedDatabase.from_settings(Settings())


def test_search_finds_tags_with_json_escapes(hosted_backend: HostedBackend) -> None:
    """Tags holding quotes or backslashes are found by their literal text."""
    category = hosted_backend.create_category("Work", "#3b82f6")
    sub = hosted_backend.create_subcategory("Meetings", category.id)
    quoted = hosted_backend.create_note(
        NoteCreate(title="Greeting", subcategory_id=sub.id, tags=['say "hi"']),
    )
    windows = hosted_backend.create_note(
        NoteCreate(title="Paths", subcategory_id=sub.id, tags=["C:\\tmp"]),
    )

    assert [n.id for n in hosted_backend.search_notes('"hi"')] == [quoted.id]
    assert [n.id for n in hosted_backend.search_notes("c:\\TMP")] == [windows.id]


def test_unreachable_database_is_a_backend_error(tmp_path: Path) -> None:
    """Connection failures surface as domain errors."""
    url = f"sqlite:///{tmp_path / 'missing' / 'notes.db'}"
    with pytest.raises(BackendError, match="Hosted database unavailable"):
        HostedDatabase(url, "memory://unreachable-bucket")
