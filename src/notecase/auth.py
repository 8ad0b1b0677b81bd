"""Ordered authentication strategies and the persisted login session.

Strategies are tried in order (hosted profiles, REST service, locally
registered users, demo credential). Each either returns the user, returns
None to reject the credentials, or raises ``NotecaseError`` when it cannot
run at all, in which case it is logged and skipped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, ValidationError

from .errors import AuthenticationError, InputValidationError, NotecaseError
from .models import AuthUser
from .security import hash_password, verify_password
from .storage import AUTH_KEY, USERS_KEY
from .utils import ensure_utc, generate_id, utc_now

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .backends.hosted import HostedDatabase
    from .backends.rest import RestBackend
    from .storage import LocalKeyValueStore

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(hours=24)
DEMO_USER_ID = "demo-user"


class AuthStrategy(Protocol):
    """One way of checking a username and password."""

    name: str

    def authenticate(self, username: str, password: str) -> AuthUser | None:
        """Return the user, or None when the credentials are rejected."""
        ...

    def logout(self) -> None:
        """Forget any credential the strategy holds."""
        ...


class HostedAuthStrategy:
    """Check credentials against the hosted ``user_profiles`` table."""

    name = "hosted"

    def __init__(self, database: Callable[[], HostedDatabase]) -> None:
        """Resolve the database lazily through ``database``."""
        self._database = database

    def authenticate(self, username: str, password: str) -> AuthUser | None:
        return self._database().authenticate(username, password)

    def logout(self) -> None:
        pass


class RestAuthStrategy:
    """Log in through the REST service; the client stores the token."""

    name = "rest"

    def __init__(self, backend: Callable[[], RestBackend]) -> None:
        self._backend = backend

    def authenticate(self, username: str, password: str) -> AuthUser | None:
        return self._backend().login(username, password)

    def logout(self) -> None:
        self._backend().logout()


class _StoredUser(BaseModel):
    id: str
    username: str
    email: str = ""
    password_hash: str
    created_at: datetime


class LocalUserStrategy:
    """Users registered in the local key/value store."""

    name = "local"

    def __init__(self, kv_store: LocalKeyValueStore) -> None:
        self.kv = kv_store

    def _users(self) -> list[_StoredUser]:
        users: list[_StoredUser] = []
        for raw in self.kv.get_json(USERS_KEY, []) or []:
            try:
                users.append(_StoredUser.model_validate(raw))
            except ValidationError as exc:
                logger.error("Skipping malformed local user record: %s", exc)  # noqa: TRY400
        return users

    def register(self, username: str, email: str, password: str) -> AuthUser:
        """Register a local user.

        Raises:
            InputValidationError: If a field is blank or the username is taken.

        """
        username = username.strip()
        if not username or not password:
            msg = "Username and password are required"
            raise InputValidationError(msg)
        users = self._users()
        if any(user.username == username for user in users):
            msg = f"Username {username} is already taken"
            raise InputValidationError(msg)
        record = _StoredUser(
            id=generate_id(),
            username=username,
            email=email,
            password_hash=hash_password(password),
            created_at=utc_now(),
        )
        users.append(record)
        self.kv.set_json(USERS_KEY, [u.model_dump(mode="json") for u in users])
        logger.info("Registered local user %s", username)
        return AuthUser(id=record.id, username=username, email=email, source=self.name)

    def authenticate(self, username: str, password: str) -> AuthUser | None:
        for user in self._users():
            if user.username == username and verify_password(password, user.password_hash):
                return AuthUser(
                    id=user.id,
                    username=user.username,
                    email=user.email,
                    source=self.name,
                )
        return None

    def logout(self) -> None:
        pass


class DemoCredentialStrategy:
    """Accept one configured demo username/password pair."""

    name = "demo"

    def __init__(self, username: str | None, password: str | None) -> None:
        self.username = username
        self.password = password

    def authenticate(self, username: str, password: str) -> AuthUser | None:
        if not self.username or not self.password:
            return None
        if username == self.username and password == self.password:
            return AuthUser(id=DEMO_USER_ID, username=username, source=self.name)
        return None

    def logout(self) -> None:
        pass


class _AuthSession(BaseModel):
    user: AuthUser
    authenticated_at: datetime


class Authenticator:
    """Run the strategies in order and keep the resulting session."""

    def __init__(
        self,
        strategies: Sequence[AuthStrategy],
        kv_store: LocalKeyValueStore | None = None,
        *,
        on_change: Callable[[AuthUser | None], None] | None = None,
    ) -> None:
        """Create an authenticator.

        Args:
            strategies: Strategies in the order they are tried.
            kv_store: Where the session is persisted; memory-only when None.
            on_change: Called with the user after login or restore, and with
                None after logout.

        """
        self.strategies = list(strategies)
        self.kv = kv_store
        self.on_change = on_change
        self.current_user: AuthUser | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    def _set_user(self, user: AuthUser | None) -> None:
        self.current_user = user
        if self.on_change is not None:
            self.on_change(user)

    def login(self, username: str, password: str) -> AuthUser:
        """Authenticate with the first strategy that accepts the credentials.

        Raises:
            InputValidationError: If username or password is blank.
            AuthenticationError: If every strategy rejected or failed.

        """
        if not username.strip() or not password:
            msg = "Username and password are required"
            raise InputValidationError(msg)
        for strategy in self.strategies:
            try:
                user = strategy.authenticate(username, password)
            except NotecaseError as exc:
                logger.warning(
                    "Authentication strategy %s failed: %s",
                    strategy.name,
                    exc.message,
                )
                continue
            if user is None:
                logger.debug("Authentication strategy %s rejected %s", strategy.name, username)
                continue
            self._persist(user)
            self._set_user(user)
            logger.info("User %s authenticated via %s", user.username, strategy.name)
            return user
        msg = "Invalid username or password"
        raise AuthenticationError(msg)

    def _persist(self, user: AuthUser) -> None:
        if self.kv is None:
            return
        record = _AuthSession(user=user, authenticated_at=utc_now())
        self.kv.set_json(AUTH_KEY, record.model_dump(mode="json"))

    def restore(self) -> AuthUser | None:
        """Revive a persisted session younger than 24 hours."""
        if self.kv is None:
            return None
        raw = self.kv.get_json(AUTH_KEY)
        if raw is None:
            return None
        try:
            record = _AuthSession.model_validate(raw)
        except ValidationError as exc:
            logger.error("Discarding malformed auth session: %s", exc)  # noqa: TRY400
            self.kv.remove_item(AUTH_KEY)
            return None
        if utc_now() - ensure_utc(record.authenticated_at) >= SESSION_TTL:
            logger.info("Auth session for %s expired", record.user.username)
            self.kv.remove_item(AUTH_KEY)
            return None
        self._set_user(record.user)
        return record.user

    def logout(self) -> None:
        """End the session in every strategy and forget it locally."""
        for strategy in self.strategies:
            try:
                strategy.logout()
            except NotecaseError as exc:
                logger.warning("Logout via %s failed: %s", strategy.name, exc.message)
        if self.kv is not None:
            self.kv.remove_item(AUTH_KEY)
        self._set_user(None)
