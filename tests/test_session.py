"""Tests for session wiring and configuration."""

from pathlib import Path

from fastapi.testclient import TestClient

from notecase.backends.hosted import HostedDatabase
from notecase.backends.local import LocalBackend
from notecase.config import Settings
from notecase.selector import DataSource
from notecase.session import create_session


def test_settings_from_env() -> None:
    """Environment variables map onto settings."""
    settings = Settings.from_env(
        {
            "NOTECASE_ROOT": "memory://notes",
            "NOTECASE_DATABASE_URL": "postgresql://u:p@db/notes",
            "NOTECASE_STORAGE_URL": "s3://bucket",
            "NOTECASE_DATA_SOURCE": "HOSTED",
            "NOTECASE_PERSIST_SELECTION": "yes",
            "NOTECASE_HTTP_TIMEOUT": "2.5",
            "ALLOW_ORIGIN": "http://a.test,http://b.test",
        },
    )
    assert settings.local_root == "memory://notes"
    assert settings.data_source == "hosted"
    assert settings.hosted_configured
    assert not settings.rest_configured
    assert not settings.local_only
    assert settings.persist_selection
    assert settings.http_timeout == 2.5
    assert settings.allow_origins == ("http://a.test", "http://b.test")

    empty = Settings.from_env({})
    assert empty.local_only
    assert empty.local_root == "./.notecase"


def test_local_only_session(tmp_path: Path) -> None:
    """A session without credentials runs on local storage and persists selection."""
    session = create_session(Settings(local_root=str(tmp_path / "store")))
    assert session.selector.active is DataSource.LOCAL
    assert session.selection.kv is session.kv_store

    backend = session.selector.backend()
    assert isinstance(backend, LocalBackend)
    backend.seed_sample_data()

    assert session.actions.refresh()
    assert len(session.store.categories) == 3
    session.selection.select_category("cat_work")

    reopened = create_session(Settings(local_root=str(tmp_path / "store")))
    assert reopened.selection.selected_category_id == "cat_work"


def test_hosted_session_binds_owner_on_login(
    tmp_path: Path,
    database: HostedDatabase,
    bucket_url: str,
) -> None:
    """Logging in through the hosted strategy scopes the hosted backend."""
    database.register_user("judy", "", "pw")
    settings = Settings(
        local_root=str(tmp_path / "store"),
        database_url="sqlite://",
        storage_url=bucket_url,
        data_source="hosted",
    )
    session = create_session(settings, database=database)
    assert session.selector.active is DataSource.HOSTED
    assert session.selection.kv is None

    assert session.actions.refresh() is False
    [denied] = session.notifier.drain()
    assert denied.message == "User not authenticated"

    user = session.actions.login("judy", "pw")
    assert user is not None
    assert user.source == "hosted"
    assert session.actions.create_category("Work") is not None

    restored = create_session(settings, database=database)
    assert restored.authenticator.current_user == user
    restored.actions.refresh()
    assert [c.name for c in restored.store.categories] == ["Work"]


def test_rest_session(
    tmp_path: Path,
    test_client: TestClient,
) -> None:
    """The REST source logs in through the service and keeps the token locally."""
    settings = Settings(
        local_root=str(tmp_path / "store"),
        api_base_url="http://testserver/api",
        network_source="rest",
    )
    session = create_session(settings, http_client=test_client)
    register = test_client.post(
        "/api/auth/register",
        json={"username": "kim", "password": "pw"},
    )
    assert register.status_code == 201

    assert session.actions.toggle_data_source() is DataSource.REST
    user = session.actions.login("kim", "pw")
    assert user is not None
    assert user.source == "rest"

    category = session.actions.create_category("Remote")
    assert category is not None
    assert [c.name for c in session.store.categories] == ["Remote"]

    session.actions.logout()
    assert session.store.categories == []
    assert session.authenticator.current_user is None


def test_unreachable_hosted_database_is_reported(tmp_path: Path) -> None:
    """Login falls through to other strategies and loading reports the failure."""
    settings = Settings(
        local_root=str(tmp_path / "store"),
        database_url=f"sqlite:///{tmp_path / 'missing' / 'notes.db'}",
        storage_url="memory://unreachable-bucket",
        demo_username="demo",
        demo_password="demo-pw",
    )
    session = create_session(settings)

    user = session.actions.login("demo", "demo-pw")
    assert user is not None
    assert user.source == "demo"
    session.notifier.drain()

    assert session.actions.toggle_data_source() is DataSource.HOSTED
    [failure] = session.notifier.drain()
    assert failure.level == "error"
    assert failure.title == "Failed to load data"
    assert failure.message.startswith("Hosted database unavailable")
