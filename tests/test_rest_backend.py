"""Tests for the REST client backend against the in-process service."""

import httpx
import pytest
from fastapi.testclient import TestClient

from notecase.backends.rest import RestBackend, TokenStore
from notecase.errors import BackendError
from notecase.models import CategoryUpdate, NoteCreate, NoteUpdate, SubcategoryUpdate
from notecase.storage import TOKEN_KEY, LocalKeyValueStore


def test_register_stores_token(
    rest_backend: RestBackend,
    local_kv: LocalKeyValueStore,
) -> None:
    """The bearer token is kept under noteapp_token."""
    token = local_kv.get_item(TOKEN_KEY)
    assert token
    assert rest_backend.me().username == "carol"
    assert rest_backend.me().source == "rest"


def test_login_and_logout(
    test_client: TestClient,
    rest_backend: RestBackend,
    local_kv: LocalKeyValueStore,
) -> None:
    """Rejected credentials return None; logout forgets the token."""
    rest_backend.logout()
    assert local_kv.get_item(TOKEN_KEY) is None

    other = RestBackend(
        "http://testserver/api",
        TokenStore(local_kv),
        client=test_client,
    )
    assert other.login("carol", "wrong") is None
    user = other.login("carol", "pa55word")
    assert user is not None
    assert user.username == "carol"
    assert local_kv.get_item(TOKEN_KEY)


def test_crud_through_the_envelope(rest_backend: RestBackend) -> None:
    """Every interface operation works over HTTP."""
    work = rest_backend.create_category("Work", "#3b82f6")
    home = rest_backend.create_category("Home", "#10b981")
    meetings = rest_backend.create_subcategory("Meetings", work.id)
    note = rest_backend.create_note(
        NoteCreate(title="Standup", subcategory_id=meetings.id, tags=["daily"]),
    )

    assert [c.name for c in rest_backend.list_categories()] == ["Work", "Home"]
    assert [s.id for s in rest_backend.list_subcategories(work.id)] == [meetings.id]

    renamed = rest_backend.update_category(work.id, CategoryUpdate(name="Office"))
    assert renamed is not None
    assert renamed.name == "Office"
    assert rest_backend.update_category("missing", CategoryUpdate(name="x")) is None

    moved = rest_backend.update_subcategory(
        meetings.id,
        SubcategoryUpdate(category_id=home.id),
    )
    assert moved is not None
    assert moved.category_id == home.id

    updated = rest_backend.update_note(note.id, NoteUpdate(content="<p>sync</p>"))
    assert updated is not None
    assert updated.updated_at > note.updated_at
    assert rest_backend.get_note(note.id) == updated
    assert rest_backend.get_note("missing") is None

    rest_backend.delete_category(home.id)
    assert rest_backend.list_notes() == []
    assert [c.id for c in rest_backend.list_categories()] == [work.id]


def test_search_and_tags(rest_backend: RestBackend) -> None:
    """Unscoped search uses /search; scoped search uses /notes."""
    work = rest_backend.create_category("Work", "#3b82f6")
    home = rest_backend.create_category("Home", "#10b981")
    work_sub = rest_backend.create_subcategory("Plans", work.id)
    home_sub = rest_backend.create_subcategory("Plans", home.id)
    a = rest_backend.create_note(
        NoteCreate(title="Plan A", subcategory_id=work_sub.id, tags=["q1"]),
    )
    b = rest_backend.create_note(
        NoteCreate(title="Plan B", subcategory_id=home_sub.id, tags=["q1", "q2"]),
    )

    assert {n.id for n in rest_backend.search_notes("plan")} == {a.id, b.id}
    assert [n.id for n in rest_backend.search_notes("plan", work.id)] == [a.id]

    results = rest_backend.global_search("plans", "subcategories")
    assert len(results.subcategories) == 2

    assert [(t.tag, t.count) for t in rest_backend.list_tags()] == [
        ("q1", 2),
        ("q2", 1),
    ]

    page = rest_backend.query_notes(limit=1)
    assert page.total == 2
    assert page.has_more is True


def test_images(rest_backend: RestBackend) -> None:
    """Upload returns the hosted URL, which can then be deleted."""
    url = rest_backend.upload_image(b"RIFF....WEBP", "pic.webp", "image/webp")
    assert url.endswith("_pic.webp")
    rest_backend.delete_image(url)


def test_errors_carry_server_message(rest_backend: RestBackend) -> None:
    """Non-2xx responses raise BackendError with the server's message."""
    with pytest.raises(BackendError) as excinfo:
        rest_backend.create_subcategory("Orphan", "missing")
    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "Category missing not found"

    with pytest.raises(BackendError, match="Invalid file type"):
        rest_backend.upload_image(b"%PDF", "doc.pdf", "application/pdf")


def test_unauthenticated_calls_fail(
    test_client: TestClient,
) -> None:
    """Without a token the service answers 401."""
    backend = RestBackend("http://testserver/api", client=test_client)
    with pytest.raises(BackendError) as excinfo:
        backend.list_categories()
    assert excinfo.value.status_code == 401


def test_network_errors_become_backend_errors() -> None:
    """Transport failures surface as BackendError."""

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(refuse))
    backend = RestBackend("http://api.example.test", client=client)
    with pytest.raises(BackendError, match="Network error"):
        backend.list_notes()


def test_unsuccessful_envelope_raises() -> None:
    """A 200 response with success=false is still an error."""

    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "error": "quota exceeded"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    backend = RestBackend("http://api.example.test", client=client)
    with pytest.raises(BackendError, match="quota exceeded"):
        backend.list_categories()
