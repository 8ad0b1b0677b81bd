"""Tests for the data-source selector and the action boundary."""

from dataclasses import replace
from unittest.mock import patch

import pytest

from notecase.actions import NoteActions, Notifier
from notecase.backends.local import LocalBackend
from notecase.config import Settings
from notecase.errors import BackendError, ConfigurationError
from notecase.selection import SelectionStore
from notecase.selector import DataSource, DataSourceSelector
from notecase.storage import LocalKeyValueStore
from notecase.store import NoteStore


def _selector(settings: Settings, kv: LocalKeyValueStore) -> DataSourceSelector:
    return DataSourceSelector(
        settings,
        {
            DataSource.LOCAL: lambda: LocalBackend(kv),
            DataSource.HOSTED: lambda: LocalBackend(kv),
            DataSource.REST: lambda: LocalBackend(kv),
        },
    )


def test_local_only_without_credentials(
    local_settings: Settings,
    local_kv: LocalKeyValueStore,
) -> None:
    """Only LOCAL is selectable when no networked credentials exist."""
    selector = _selector(local_settings, local_kv)
    assert selector.local_only
    assert selector.available_sources() == [DataSource.LOCAL]

    with pytest.raises(ConfigurationError):
        selector.toggle()
    assert selector.active is DataSource.LOCAL

    with pytest.raises(ConfigurationError):
        selector.select("rest")
    with pytest.raises(ConfigurationError, match="Unknown data source"):
        selector.select("ftp")


def test_toggle_with_configured_network_source(
    local_settings: Settings,
    local_kv: LocalKeyValueStore,
) -> None:
    """Toggle flips between LOCAL and the configured network source."""
    settings = replace(
        local_settings,
        api_base_url="http://api.example.test",
        network_source="rest",
    )
    selector = _selector(settings, local_kv)
    assert selector.toggle() is DataSource.REST
    assert selector.toggle() is DataSource.LOCAL
    with pytest.raises(ConfigurationError):
        selector.select(DataSource.HOSTED)


def test_hosted_needs_parseable_database_url(
    local_settings: Settings,
    local_kv: LocalKeyValueStore,
) -> None:
    """A malformed database URL does not count as configured."""
    broken = replace(local_settings, database_url="::not a url::", storage_url="memory://b")
    assert not _selector(broken, local_kv).is_available(DataSource.HOSTED)

    valid = replace(local_settings, database_url="sqlite://", storage_url="memory://b")
    assert _selector(valid, local_kv).is_available(DataSource.HOSTED)


def test_backends_are_built_lazily_and_cached(
    local_settings: Settings,
    local_kv: LocalKeyValueStore,
) -> None:
    """Each factory runs at most once."""
    calls: list[str] = []

    def factory() -> LocalBackend:
        calls.append("local")
        return LocalBackend(local_kv)

    selector = DataSourceSelector(local_settings, {DataSource.LOCAL: factory})
    assert calls == []
    assert selector.backend() is selector.backend()
    assert calls == ["local"]


def test_unavailable_initial_source_starts_local(
    local_settings: Settings,
    local_kv: LocalKeyValueStore,
) -> None:
    """An unconfigured initial source starts on LOCAL."""
    selector = DataSourceSelector(
        local_settings,
        {DataSource.LOCAL: lambda: LocalBackend(local_kv)},
        initial="hosted",
    )
    assert selector.active is DataSource.LOCAL


def _actions(settings: Settings, kv: LocalKeyValueStore) -> NoteActions:
    selector = _selector(settings, kv)
    return NoteActions(NoteStore(selector), SelectionStore(), selector, Notifier())


def test_toggle_rejected_without_hosted_credentials(
    local_settings: Settings,
    local_kv: LocalKeyValueStore,
) -> None:
    """Toggling is rejected, the backend is unchanged and the user is told why."""
    actions = _actions(local_settings, local_kv)
    backend_before = actions.selector.backend()

    assert actions.toggle_data_source() is None

    assert actions.selector.active is DataSource.LOCAL
    assert actions.selector.backend() is backend_before
    [notification] = actions.notifier.drain()
    assert notification.level == "error"
    assert notification.blocking is True
    assert notification.title == "Configuration required"
    assert "not configured" in notification.message


def test_set_data_source_reloads(
    local_settings: Settings,
    local_kv: LocalKeyValueStore,
) -> None:
    """Switching to a configured source reloads its data."""
    settings = replace(local_settings, api_base_url="http://api.example.test")
    actions = _actions(settings, local_kv)
    with patch.object(NoteStore, "load") as load:
        assert actions.set_data_source("rest") is True
    load.assert_called_once()
    assert actions.selector.active is DataSource.REST


def test_errors_become_notifications(
    local_settings: Settings,
    local_kv: LocalKeyValueStore,
) -> None:
    """Actions never raise; failures are reported instead."""
    actions = _actions(local_settings, local_kv)

    assert actions.create_category("  ") is None
    [validation] = actions.notifier.drain()
    assert validation.level == "error"
    assert validation.title == "Failed to create category"
    assert validation.message == "Category name is required"

    with patch.object(LocalBackend, "delete_note", side_effect=BackendError("offline")):
        assert actions.delete_note("n1") is False
    [failure] = actions.notifier.drain()
    assert failure.message == "offline"


def test_successful_actions_notify_and_select(
    local_settings: Settings,
    local_kv: LocalKeyValueStore,
) -> None:
    """Successful actions toast and keep the selection consistent."""
    actions = _actions(local_settings, local_kv)
    category = actions.create_category("Work")
    assert category is not None
    subcategory = actions.create_subcategory("Meetings", category.id)
    assert subcategory is not None
    note = actions.create_note("Standup", subcategory.id, tags=["daily"])
    assert note is not None
    assert actions.selection.selected_note_id == note.id

    actions.selection.select_category(category.id)
    assert actions.toggle_tag("daily") == [note]
    assert actions.search("absent") == []

    assert actions.delete_category(category.id) is True
    assert actions.selection.selected_category_id is None
    assert actions.store.notes == []
    titles = [n.title for n in actions.notifier.drain()]
    assert titles == [
        "Category created",
        "Subcategory created",
        "Note created",
        "Category deleted",
    ]
