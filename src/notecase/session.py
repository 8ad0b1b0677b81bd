"""Explicit construction of a ready-to-use application session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cache
from typing import TYPE_CHECKING

from .actions import NoteActions, Notifier
from .auth import (
    AuthStrategy,
    Authenticator,
    DemoCredentialStrategy,
    HostedAuthStrategy,
    LocalUserStrategy,
    RestAuthStrategy,
)
from .backends.hosted import HostedBackend, HostedDatabase
from .backends.local import LocalBackend
from .backends.rest import RestBackend, TokenStore
from .config import DEFAULT_API_BASE_URL, Settings
from .selection import SelectionStore
from .selector import DataSource, DataSourceSelector
from .storage import LocalKeyValueStore
from .store import NoteStore

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from .backends.base import Backend
    from .models import AuthUser

logger = logging.getLogger(__name__)


def _hosted_owner(user: AuthUser | None) -> str | None:
    return user.id if user is not None and user.source == "hosted" else None


@dataclass
class Session:
    """Every stateful component of one running application."""

    settings: Settings
    kv_store: LocalKeyValueStore
    selection: SelectionStore
    selector: DataSourceSelector
    store: NoteStore
    authenticator: Authenticator
    notifier: Notifier
    actions: NoteActions


def create_session(
    settings: Settings | None = None,
    *,
    kv_store: LocalKeyValueStore | None = None,
    http_client: httpx.Client | None = None,
    database: HostedDatabase | None = None,
) -> Session:
    """Build a session in dependency order.

    The selection store is created and loaded before the note store; the
    authenticator binds the hosted backend to whoever logs in.

    Args:
        settings: Configuration; read from the environment when omitted.
        kv_store: Local key/value store; opened at ``settings.local_root``
            when omitted.
        http_client: HTTP client for the REST backend.
        database: Pre-built hosted database, used instead of connecting
            from ``settings``.

    """
    settings = settings or Settings.from_env()
    kv = kv_store or LocalKeyValueStore(settings.local_root)

    selection = SelectionStore(kv if settings.persist_selection or settings.local_only else None)
    selection.load()

    @cache
    def hosted_database() -> HostedDatabase:
        return database or HostedDatabase.from_settings(settings)

    @cache
    def hosted_backend() -> HostedBackend:
        return HostedBackend(hosted_database(), _hosted_owner(authenticator.current_user))

    @cache
    def rest_backend() -> RestBackend:
        return RestBackend(
            settings.api_base_url or DEFAULT_API_BASE_URL,
            TokenStore(kv),
            client=http_client,
            timeout=settings.http_timeout,
        )

    factories: dict[DataSource, Callable[[], Backend]] = {
        DataSource.LOCAL: lambda: LocalBackend(kv),
        DataSource.HOSTED: hosted_backend,
        DataSource.REST: rest_backend,
    }
    selector = DataSourceSelector(settings, factories, initial=settings.data_source)
    store = NoteStore(selector)

    strategies: list[AuthStrategy] = []
    if settings.hosted_configured:
        strategies.append(HostedAuthStrategy(hosted_database))
    if settings.rest_configured:
        strategies.append(RestAuthStrategy(rest_backend))
    strategies.append(LocalUserStrategy(kv))
    strategies.append(DemoCredentialStrategy(settings.demo_username, settings.demo_password))

    def bind_owner(user: AuthUser | None) -> None:
        backend = selector.built_backend(DataSource.HOSTED)
        if isinstance(backend, HostedBackend):
            backend.bind_owner(_hosted_owner(user))

    authenticator = Authenticator(strategies, kv, on_change=bind_owner)
    authenticator.restore()

    notifier = Notifier()
    actions = NoteActions(store, selection, selector, notifier, authenticator)
    logger.debug(
        "Session ready: source=%s available=%s",
        selector.active,
        [s.value for s in selector.available_sources()],
    )
    return Session(
        settings=settings,
        kv_store=kv,
        selection=selection,
        selector=selector,
        store=store,
        authenticator=authenticator,
        notifier=notifier,
        actions=actions,
    )
