"""Hosted relational backend: SQLAlchemy tables plus an fsspec image bucket.

Every data query is scoped by the ``user_id`` owner column. Images live in
the bucket under ``<owner>/<epoch-ms>_<filename>`` and are referenced by
their public URL.
"""

from __future__ import annotations

import json
import logging
import re
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import Select, String, cast, create_engine, delete, or_, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from notecase.errors import AuthenticationError, BackendError, ConfigurationError
from notecase.models import (
    AuthUser,
    Category,
    CategoryUpdate,
    Note,
    NotePage,
    NoteCreate,
    NoteUpdate,
    Subcategory,
    SubcategoryUpdate,
    changes_of,
)
from notecase.search import filter_notes, notes_with_any_tag
from notecase.security import hash_password, new_token, verify_password
from notecase.utils import (
    epoch_millis,
    fs_exists,
    fs_join,
    generate_id,
    get_fs_and_path,
    next_timestamp,
    utc_now,
)

from .base import Backend
from .tables import (
    ApiTokenRow,
    Base,
    CategoryRow,
    NoteRow,
    SubcategoryRow,
    UserProfileRow,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from fsspec import AbstractFileSystem
    from sqlalchemy.engine import Engine

    from notecase.config import Settings

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
LIKE_ESCAPE = "\\"


def _engine_for(database_url: str) -> Engine:
    url = make_url(database_url)
    kwargs: dict[str, Any] = {
        # keep non-ASCII tags searchable as plain text
        "json_serializer": lambda obj: json.dumps(obj, ensure_ascii=False),
    }
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def _escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


def _json_literal_safe(query: str) -> bool:
    """Return True when ``query`` is spelled the same inside a JSON string."""
    return query.isascii() and not any(
        char in {'"', "\\"} or not char.isprintable() for char in query
    )


def _safe_filename(filename: str) -> str:
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    return UNSAFE_FILENAME_CHARS.sub("_", base).strip("._") or "image"


def _subcategory(row: SubcategoryRow) -> Subcategory:
    return Subcategory(
        id=row.id,
        name=row.name,
        category_id=row.category_id,
        created_at=row.created_at,
    )


def _category(row: CategoryRow, subcategories: Iterable[SubcategoryRow] = ()) -> Category:
    return Category(
        id=row.id,
        name=row.name,
        color=row.color,
        created_at=row.created_at,
        subcategories=[_subcategory(sub) for sub in subcategories],
    )


def _note(row: NoteRow) -> Note:
    return Note(
        id=row.id,
        title=row.title,
        content=row.content or "",
        subcategory_id=row.subcategory_id,
        tags=list(row.tags or []),
        images=list(row.images or []),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _user(row: UserProfileRow) -> AuthUser:
    return AuthUser(id=row.id, username=row.username, email=row.email, source="hosted")


class HostedDatabase:
    """Connection to the relational database and the image bucket."""

    def __init__(
        self,
        database_url: str,
        storage_url: str,
        *,
        public_base_url: str | None = None,
        storage_fs: AbstractFileSystem | None = None,
        engine: Engine | None = None,
        create_schema: bool = True,
    ) -> None:
        """Connect to ``database_url`` and the bucket at ``storage_url``.

        Args:
            database_url: SQLAlchemy database URL.
            storage_url: fsspec URL of the image bucket.
            public_base_url: Prefix of public image URLs; defaults to
                ``storage_url``.
            storage_fs: Optional pre-built bucket filesystem.
            engine: Optional pre-built engine.
            create_schema: Create missing tables on connect.

        Raises:
            BackendError: If the database or the bucket cannot be reached.

        """
        try:
            self.engine = engine or _engine_for(database_url)
            self.bucket_fs, self.bucket_root = get_fs_and_path(storage_url, storage_fs)
            if create_schema:
                Base.metadata.create_all(self.engine)
        except (SQLAlchemyError, ImportError, OSError, ValueError) as exc:
            logger.exception("Could not connect to the hosted database")
            msg = f"Hosted database unavailable: {exc.__class__.__name__}"
            raise BackendError(msg) from exc
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self.public_base_url = (public_base_url or storage_url).rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> HostedDatabase:
        """Connect using configured credentials.

        Raises:
            ConfigurationError: If the hosted backend is not configured.

        """
        if not settings.hosted_configured:
            msg = (
                "Hosted database is not configured. Set NOTECASE_DATABASE_URL "
                "and NOTECASE_STORAGE_URL."
            )
            raise ConfigurationError(msg)
        return cls(
            settings.database_url or "",
            settings.storage_url or "",
            public_base_url=settings.public_image_url,
        )

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session committed on success and rolled back on failure."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Hosted database call failed")
            msg = f"Database error: {exc.__class__.__name__}"
            raise BackendError(msg) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

    # -- user profiles and tokens -------------------------------------

    def register_user(self, username: str, email: str, password: str) -> AuthUser:
        """Create a user profile.

        Raises:
            BackendError: If the username is already taken.

        """
        row = UserProfileRow(
            id=generate_id(),
            username=username,
            email=email,
            password_hash=hash_password(password),
            created_at=utc_now(),
        )
        try:
            with self.session() as session:
                taken = session.scalar(
                    select(UserProfileRow.id).where(UserProfileRow.username == username),
                )
                if taken is not None:
                    msg = f"Username {username} is already taken"
                    raise BackendError(msg, status_code=409)
                session.add(row)
        except BackendError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                msg = f"Username {username} is already taken"
                raise BackendError(msg, status_code=409) from exc
            raise
        logger.info("Registered user %s", username)
        return _user(row)

    def authenticate(self, username: str, password: str) -> AuthUser | None:
        """Return the user when the credentials match, else None."""
        with self.session() as session:
            row = session.scalar(
                select(UserProfileRow).where(UserProfileRow.username == username),
            )
            if row is None or not verify_password(password, row.password_hash):
                return None
            return _user(row)

    def get_user(self, user_id: str) -> AuthUser | None:
        """Return the user profile for ``user_id``."""
        with self.session() as session:
            row = session.get(UserProfileRow, user_id)
            return _user(row) if row is not None else None

    def issue_token(self, user_id: str) -> str:
        """Create and persist a bearer token for ``user_id``."""
        token = new_token()
        with self.session() as session:
            session.add(ApiTokenRow(token=token, user_id=user_id, created_at=utc_now()))
        return token

    def resolve_token(self, token: str) -> AuthUser | None:
        """Return the user owning ``token``, if any."""
        with self.session() as session:
            row = session.get(ApiTokenRow, token)
            if row is None:
                return None
            user = session.get(UserProfileRow, row.user_id)
            return _user(user) if user is not None else None

    def revoke_token(self, token: str) -> None:
        """Delete ``token``; unknown tokens are ignored."""
        with self.session() as session:
            session.execute(delete(ApiTokenRow).where(ApiTokenRow.token == token))


class HostedBackend(Backend):
    """Owner-scoped view of a ``HostedDatabase``."""

    name = "hosted"

    def __init__(self, database: HostedDatabase, owner_id: str | None = None) -> None:
        """Bind the backend to ``database`` and, optionally, an owner."""
        self.database = database
        self.owner_id = owner_id

    def bind_owner(self, owner_id: str | None) -> None:
        """Scope subsequent queries to ``owner_id`` (None signs out)."""
        self.owner_id = owner_id

    def _owner(self) -> str:
        if not self.owner_id:
            msg = "User not authenticated"
            raise AuthenticationError(msg)
        return self.owner_id

    # -- categories ----------------------------------------------------

    def _category_row(self, session: Session, category_id: str) -> CategoryRow | None:
        return session.scalar(
            select(CategoryRow).where(
                CategoryRow.id == category_id,
                CategoryRow.user_id == self._owner(),
            ),
        )

    def _subcategory_rows(
        self,
        session: Session,
        category_id: str | None = None,
    ) -> list[SubcategoryRow]:
        stmt = select(SubcategoryRow).where(SubcategoryRow.user_id == self._owner())
        if category_id is not None:
            stmt = stmt.where(SubcategoryRow.category_id == category_id)
        return list(session.scalars(stmt.order_by(SubcategoryRow.created_at.asc())))

    def list_categories(self) -> list[Category]:
        """Return categories and subcategories ordered by creation time."""
        owner = self._owner()
        with self.database.session() as session:
            rows = session.scalars(
                select(CategoryRow)
                .where(CategoryRow.user_id == owner)
                .order_by(CategoryRow.created_at.asc()),
            ).all()
            subcategories = self._subcategory_rows(session)
            return [
                _category(row, [s for s in subcategories if s.category_id == row.id])
                for row in rows
            ]

    def create_category(self, name: str, color: str) -> Category:
        """Insert a category owned by the bound user."""
        row = CategoryRow(
            id=generate_id(),
            user_id=self._owner(),
            name=name,
            color=color,
            created_at=utc_now(),
        )
        with self.database.session() as session:
            session.add(row)
        return _category(row)

    def update_category(
        self,
        category_id: str,
        changes: CategoryUpdate,
    ) -> Category | None:
        """Update name and/or color; returns None for unknown ids."""
        with self.database.session() as session:
            row = self._category_row(session, category_id)
            if row is None:
                return None
            for field, value in changes_of(changes).items():
                setattr(row, field, value)
            session.flush()
            return _category(row, self._subcategory_rows(session, category_id))

    def delete_category(self, category_id: str) -> None:
        """Delete notes, then subcategories, then the category itself."""
        owner = self._owner()
        with self.database.session() as session:
            sub_ids = list(
                session.scalars(
                    select(SubcategoryRow.id).where(
                        SubcategoryRow.category_id == category_id,
                        SubcategoryRow.user_id == owner,
                    ),
                ),
            )
            if sub_ids:
                session.execute(
                    delete(NoteRow).where(
                        NoteRow.subcategory_id.in_(sub_ids),
                        NoteRow.user_id == owner,
                    ),
                )
            session.execute(
                delete(SubcategoryRow).where(
                    SubcategoryRow.category_id == category_id,
                    SubcategoryRow.user_id == owner,
                ),
            )
            session.execute(
                delete(CategoryRow).where(
                    CategoryRow.id == category_id,
                    CategoryRow.user_id == owner,
                ),
            )

    # -- subcategories -------------------------------------------------

    def create_subcategory(self, name: str, category_id: str) -> Subcategory:
        """Insert a subcategory under one of the owner's categories."""
        owner = self._owner()
        with self.database.session() as session:
            if self._category_row(session, category_id) is None:
                msg = f"Category {category_id} not found"
                raise BackendError(msg, status_code=404)
            row = SubcategoryRow(
                id=generate_id(),
                user_id=owner,
                category_id=category_id,
                name=name,
                created_at=utc_now(),
            )
            session.add(row)
        return _subcategory(row)

    def update_subcategory(
        self,
        subcategory_id: str,
        changes: SubcategoryUpdate,
    ) -> Subcategory | None:
        """Rename and/or move a subcategory; returns None for unknown ids."""
        owner = self._owner()
        fields = changes_of(changes)
        with self.database.session() as session:
            row = session.scalar(
                select(SubcategoryRow).where(
                    SubcategoryRow.id == subcategory_id,
                    SubcategoryRow.user_id == owner,
                ),
            )
            if row is None:
                return None
            target = fields.get("category_id")
            if target is not None and self._category_row(session, target) is None:
                msg = f"Category {target} not found"
                raise BackendError(msg, status_code=404)
            for field, value in fields.items():
                setattr(row, field, value)
            return _subcategory(row)

    def delete_subcategory(self, subcategory_id: str) -> None:
        """Delete the subcategory's notes, then the subcategory."""
        owner = self._owner()
        with self.database.session() as session:
            session.execute(
                delete(NoteRow).where(
                    NoteRow.subcategory_id == subcategory_id,
                    NoteRow.user_id == owner,
                ),
            )
            session.execute(
                delete(SubcategoryRow).where(
                    SubcategoryRow.id == subcategory_id,
                    SubcategoryRow.user_id == owner,
                ),
            )

    # -- notes ---------------------------------------------------------

    def _note_scope(self, category_id: str | None = None) -> Select[tuple[NoteRow]]:
        stmt = select(NoteRow).where(NoteRow.user_id == self._owner())
        if category_id is not None:
            stmt = stmt.where(
                NoteRow.subcategory_id.in_(
                    select(SubcategoryRow.id).where(
                        SubcategoryRow.category_id == category_id,
                        SubcategoryRow.user_id == self._owner(),
                    ),
                ),
            )
        return stmt

    def list_notes(self) -> list[Note]:
        """Return the owner's notes, most recently updated first."""
        with self.database.session() as session:
            rows = session.scalars(
                self._note_scope().order_by(NoteRow.updated_at.desc()),
            )
            return [_note(row) for row in rows]

    def create_note(self, data: NoteCreate) -> Note:
        """Insert a note under one of the owner's subcategories."""
        owner = self._owner()
        now = utc_now()
        with self.database.session() as session:
            parent = session.scalar(
                select(SubcategoryRow.id).where(
                    SubcategoryRow.id == data.subcategory_id,
                    SubcategoryRow.user_id == owner,
                ),
            )
            if parent is None:
                msg = f"Subcategory {data.subcategory_id} not found"
                raise BackendError(msg, status_code=404)
            row = NoteRow(
                id=generate_id(),
                user_id=owner,
                subcategory_id=data.subcategory_id,
                title=data.title,
                content=data.content,
                tags=list(data.tags),
                images=list(data.images),
                created_at=now,
                updated_at=now,
            )
            session.add(row)
        return _note(row)

    def update_note(self, note_id: str, changes: NoteUpdate) -> Note | None:
        """Update note fields and refresh ``updated_at``."""
        owner = self._owner()
        with self.database.session() as session:
            row = session.scalar(
                select(NoteRow).where(NoteRow.id == note_id, NoteRow.user_id == owner),
            )
            if row is None:
                return None
            for field, value in changes_of(changes).items():
                setattr(row, field, list(value) if isinstance(value, list) else value)
            row.updated_at = next_timestamp(row.updated_at)
            return _note(row)

    def delete_note(self, note_id: str) -> None:
        """Delete a single note owned by the bound user."""
        owner = self._owner()
        with self.database.session() as session:
            session.execute(
                delete(NoteRow).where(NoteRow.id == note_id, NoteRow.user_id == owner),
            )

    def get_note(self, note_id: str) -> Note | None:
        """Return one of the owner's notes by id."""
        owner = self._owner()
        with self.database.session() as session:
            row = session.scalar(
                select(NoteRow).where(NoteRow.id == note_id, NoteRow.user_id == owner),
            )
            return _note(row) if row is not None else None

    def search_notes(self, query: str, category_id: str | None = None) -> list[Note]:
        """Find notes by substring over title, content and tags.

        Queries that read the same inside JSON text are narrowed in SQL first;
        the shared matcher then removes hits that only matched JSON
        punctuation of the tag column.
        """
        stmt = self._note_scope(category_id)
        if query and _json_literal_safe(query):
            pattern = f"%{_escape_like(query)}%"
            stmt = stmt.where(
                or_(
                    NoteRow.title.ilike(pattern, escape=LIKE_ESCAPE),
                    NoteRow.content.ilike(pattern, escape=LIKE_ESCAPE),
                    cast(NoteRow.tags, String).ilike(pattern, escape=LIKE_ESCAPE),
                ),
            )
        with self.database.session() as session:
            rows = session.scalars(stmt.order_by(NoteRow.updated_at.desc()))
            candidates = [_note(row) for row in rows]
        return filter_notes(candidates, query)

    def query_notes(  # noqa: PLR0913
        self,
        *,
        subcategory_id: str | None = None,
        category_id: str | None = None,
        search: str | None = None,
        tags: list[str] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> NotePage:
        """Filter the owner's notes and return one offset/limit page."""
        if search:
            notes = self.search_notes(search, category_id)
        else:
            with self.database.session() as session:
                rows = session.scalars(
                    self._note_scope(category_id).order_by(NoteRow.updated_at.desc()),
                )
                notes = [_note(row) for row in rows]
        if subcategory_id:
            notes = [n for n in notes if n.subcategory_id == subcategory_id]
        if tags:
            notes = notes_with_any_tag(notes, tags)
        total = len(notes)
        offset = max(offset, 0)
        end = total if limit is None else offset + limit
        return NotePage(
            notes=notes[offset:end],
            total=total,
            limit=limit,
            offset=offset,
            has_more=end < total,
        )

    # -- images --------------------------------------------------------

    def upload_image(self, data: bytes, filename: str, content_type: str) -> str:
        """Write the image to the bucket and return its public URL."""
        owner = self._owner()
        path = f"{owner}/{epoch_millis()}_{_safe_filename(filename)}"
        target = fs_join(self.database.bucket_root, path)
        try:
            self.database.bucket_fs.makedirs(
                fs_join(self.database.bucket_root, owner),
                exist_ok=True,
            )
            with self.database.bucket_fs.open(target, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            logger.exception("Failed to upload image %s", filename)
            msg = f"Failed to upload image: {exc}"
            raise BackendError(msg) from exc
        logger.info("Uploaded %s image to %s", content_type, path)
        return f"{self.database.public_base_url}/{path}"

    def delete_image(self, reference: str) -> None:
        """Delete an image by public URL or bucket path."""
        owner = self._owner()
        prefix = f"{self.database.public_base_url}/"
        path = reference[len(prefix) :] if reference.startswith(prefix) else reference
        path = path.lstrip("/")
        if not path.startswith(f"{owner}/") or ".." in path.split("/"):
            msg = f"Image {reference} does not belong to the current user"
            raise BackendError(msg, status_code=403)
        target = fs_join(self.database.bucket_root, path)
        try:
            if fs_exists(self.database.bucket_fs, target):
                self.database.bucket_fs.rm(target)
        except OSError as exc:
            logger.exception("Failed to delete image %s", reference)
            msg = f"Failed to delete image: {exc}"
            raise BackendError(msg) from exc
