"""Client for the custom JSON-over-HTTP note service.

Every response is wrapped in ``{"success": bool, "data": ..., "error": str}``;
list endpoints may add ``pagination``. Authenticated calls carry the bearer
token kept in the local key/value store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import TypeAdapter, ValidationError

from notecase.config import DEFAULT_API_BASE_URL, DEFAULT_HTTP_TIMEOUT
from notecase.errors import AuthenticationError, BackendError
from notecase.models import (
    AuthUser,
    Category,
    CategoryUpdate,
    Note,
    NoteCreate,
    NotePage,
    NoteUpdate,
    SearchResults,
    Subcategory,
    SubcategoryUpdate,
    TagCount,
    changes_of,
)
from notecase.search import filter_notes
from notecase.storage import TOKEN_KEY

from .base import Backend

if TYPE_CHECKING:
    from notecase.storage import LocalKeyValueStore

logger = logging.getLogger(__name__)

_CATEGORY_LIST = TypeAdapter(list[Category])
_NOTE_LIST = TypeAdapter(list[Note])
_TAG_LIST = TypeAdapter(list[TagCount])


class TokenStore:
    """Bearer token persisted under ``noteapp_token``."""

    def __init__(self, kv_store: LocalKeyValueStore | None = None) -> None:
        """Keep the token in ``kv_store``, or in memory when none is given."""
        self.kv = kv_store
        self._token: str | None = None

    def get(self) -> str | None:
        """Return the current token."""
        if self.kv is not None:
            return self.kv.get_item(TOKEN_KEY)
        return self._token

    def set(self, token: str) -> None:
        """Remember ``token``."""
        if self.kv is not None:
            self.kv.set_item(TOKEN_KEY, token)
        self._token = token

    def clear(self) -> None:
        """Forget the token."""
        if self.kv is not None:
            self.kv.remove_item(TOKEN_KEY)
        self._token = None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        message = body.get("error") or body.get("detail")
        if isinstance(message, str) and message:
            return message
    return f"HTTP {response.status_code}"


class RestBackend(Backend):
    """Backend talking to the REST service through ``httpx``."""

    name = "rest"

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        tokens: TokenStore | None = None,
        *,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        """Create a client for the service at ``base_url``.

        Args:
            base_url: Service root, e.g. ``http://localhost:3000/api``.
            tokens: Where the bearer token is kept.
            client: Optional pre-built HTTP client (tests pass a TestClient).
            timeout: Request timeout in seconds for the default client.

        """
        self.base_url = base_url.rstrip("/")
        self.tokens = tokens or TokenStore()
        self.client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self.client.close()

    # -- transport -----------------------------------------------------

    def _headers(self) -> dict[str, str]:
        token = self.tokens.get()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _send(
        self,
        method: str,
        path: str,
        **kwargs: Any,  # noqa: ANN401
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.client.request(
                method,
                url,
                headers=self._headers(),
                **kwargs,
            )
        except httpx.HTTPError as exc:
            logger.exception("%s %s failed", method, url)
            msg = f"Network error: {exc}"
            raise BackendError(msg) from exc

        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "%s %s returned %d: %s",
                method,
                url,
                response.status_code,
                message,
            )
            raise BackendError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            msg = f"Invalid JSON response from {path}"
            raise BackendError(msg, status_code=response.status_code) from exc
        if not isinstance(body, dict) or not body.get("success", False):
            message = body.get("error") if isinstance(body, dict) else None
            raise BackendError(
                message or "Request failed",
                status_code=response.status_code,
            )
        return body

    def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,  # noqa: ANN401
    ) -> Any:  # noqa: ANN401
        return self._send(method, path, **kwargs).get("data")

    def _parse[T](self, adapter: TypeAdapter[T], data: Any) -> T:  # noqa: ANN401
        try:
            return adapter.validate_python(data)
        except ValidationError as exc:
            msg = f"Unexpected response payload: {exc.error_count()} invalid field(s)"
            raise BackendError(msg) from exc

    # -- auth ----------------------------------------------------------

    def _accept_session(self, data: Any) -> AuthUser:  # noqa: ANN401
        if not isinstance(data, dict) or not data.get("token"):
            msg = "Authentication response did not include a token"
            raise AuthenticationError(msg)
        self.tokens.set(data["token"])
        user = self._parse(TypeAdapter(AuthUser), data.get("user"))
        return user.model_copy(update={"source": self.name})

    def login(self, username: str, password: str) -> AuthUser | None:
        """Log in and store the issued token.

        Returns:
            The user, or None when the service rejects the credentials.

        """
        try:
            data = self._request(
                "POST",
                "/auth/login",
                json={"username": username, "password": password},
            )
        except BackendError as exc:
            if exc.status_code in (400, 401, 403):
                return None
            raise
        return self._accept_session(data)

    def register(self, username: str, email: str, password: str) -> AuthUser:
        """Create an account and store the issued token."""
        data = self._request(
            "POST",
            "/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        return self._accept_session(data)

    def logout(self) -> None:
        """Revoke the token server-side (best effort) and forget it."""
        if self.tokens.get():
            try:
                self._request("POST", "/auth/logout")
            except BackendError as exc:
                logger.warning("Logout request failed: %s", exc.message)
        self.tokens.clear()

    def me(self) -> AuthUser:
        """Return the user owning the current token."""
        user = self._parse(TypeAdapter(AuthUser), self._request("GET", "/auth/me"))
        return user.model_copy(update={"source": self.name})

    # -- categories ----------------------------------------------------

    def list_categories(self) -> list[Category]:
        """Fetch categories with nested subcategories."""
        return self._parse(_CATEGORY_LIST, self._request("GET", "/categories"))

    def create_category(self, name: str, color: str) -> Category:
        """Create a category."""
        data = self._request("POST", "/categories", json={"name": name, "color": color})
        return self._parse(TypeAdapter(Category), data)

    def update_category(
        self,
        category_id: str,
        changes: CategoryUpdate,
    ) -> Category | None:
        """Update a category; a 404 is reported as None."""
        try:
            data = self._request(
                "PUT",
                f"/categories/{category_id}",
                json=changes_of(changes),
            )
        except BackendError as exc:
            if exc.status_code == 404:
                return None
            raise
        return self._parse(TypeAdapter(Category), data)

    def delete_category(self, category_id: str) -> None:
        """Delete a category; the service cascades."""
        self._request("DELETE", f"/categories/{category_id}")

    # -- subcategories -------------------------------------------------

    def list_subcategories(self, category_id: str | None = None) -> list[Subcategory]:
        """Fetch subcategories, optionally for one category."""
        params = {"category_id": category_id} if category_id else None
        data = self._request("GET", "/subcategories", params=params)
        return self._parse(TypeAdapter(list[Subcategory]), data)

    def create_subcategory(self, name: str, category_id: str) -> Subcategory:
        """Create a subcategory."""
        data = self._request(
            "POST",
            "/subcategories",
            json={"name": name, "category_id": category_id},
        )
        return self._parse(TypeAdapter(Subcategory), data)

    def update_subcategory(
        self,
        subcategory_id: str,
        changes: SubcategoryUpdate,
    ) -> Subcategory | None:
        """Update a subcategory; a 404 is reported as None."""
        try:
            data = self._request(
                "PUT",
                f"/subcategories/{subcategory_id}",
                json=changes_of(changes),
            )
        except BackendError as exc:
            if exc.status_code == 404:
                return None
            raise
        return self._parse(TypeAdapter(Subcategory), data)

    def delete_subcategory(self, subcategory_id: str) -> None:
        """Delete a subcategory; the service cascades."""
        self._request("DELETE", f"/subcategories/{subcategory_id}")

    # -- notes ---------------------------------------------------------

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
        """Fetch one page of notes matching the filters."""
        params: dict[str, Any] = {"offset": offset}
        if subcategory_id:
            params["subcategory_id"] = subcategory_id
        if category_id:
            params["category_id"] = category_id
        if search:
            params["search"] = search
        if tags:
            params["tags"] = ",".join(tags)
        if limit is not None:
            params["limit"] = limit
        body = self._send("GET", "/notes", params=params)
        notes = self._parse(_NOTE_LIST, body.get("data"))
        pagination = body.get("pagination") or {}
        return NotePage(
            notes=notes,
            total=pagination.get("total", len(notes)),
            limit=pagination.get("limit", limit),
            offset=pagination.get("offset", offset),
            has_more=pagination.get("has_more", False),
        )

    def list_notes(self) -> list[Note]:
        """Fetch every note (unpaginated)."""
        return self.query_notes().notes

    def get_note(self, note_id: str) -> Note | None:
        """Fetch one note; a 404 is reported as None."""
        try:
            data = self._request("GET", f"/notes/{note_id}")
        except BackendError as exc:
            if exc.status_code == 404:
                return None
            raise
        return self._parse(TypeAdapter(Note), data)

    def create_note(self, data: NoteCreate) -> Note:
        """Create a note."""
        payload = self._request("POST", "/notes", json=data.model_dump(mode="json"))
        return self._parse(TypeAdapter(Note), payload)

    def update_note(self, note_id: str, changes: NoteUpdate) -> Note | None:
        """Update a note; a 404 is reported as None."""
        try:
            data = self._request("PUT", f"/notes/{note_id}", json=changes_of(changes))
        except BackendError as exc:
            if exc.status_code == 404:
                return None
            raise
        return self._parse(TypeAdapter(Note), data)

    def delete_note(self, note_id: str) -> None:
        """Delete a note."""
        self._request("DELETE", f"/notes/{note_id}")

    # -- images --------------------------------------------------------

    def upload_image(self, data: bytes, filename: str, content_type: str) -> str:
        """Upload an image as multipart field ``file`` and return its URL."""
        payload = self._request(
            "POST",
            "/upload/image",
            files={"file": (filename, data, content_type)},
        )
        if not isinstance(payload, dict) or not payload.get("url"):
            msg = "Upload response did not include a URL"
            raise BackendError(msg)
        return str(payload["url"])

    def delete_image(self, reference: str) -> None:
        """Delete a previously uploaded image by URL."""
        self._request("DELETE", "/upload/image", params={"url": reference})

    # -- search and tags -----------------------------------------------

    def global_search(
        self,
        query: str,
        search_type: str = "all",
        limit: int = 50,
    ) -> SearchResults:
        """Search notes, categories and subcategories at once."""
        data = self._request(
            "GET",
            "/search",
            params={"q": query, "type": search_type, "limit": limit},
        )
        return self._parse(TypeAdapter(SearchResults), data or {})

    def search_notes(self, query: str, category_id: str | None = None) -> list[Note]:
        """Search notes, scoped to a category through ``/notes`` when asked."""
        if category_id:
            notes = self.query_notes(search=query, category_id=category_id).notes
        else:
            notes = self.global_search(query, "notes").notes
        return filter_notes(notes, query)

    def list_tags(self) -> list[TagCount]:
        """Fetch tag usage counts."""
        return self._parse(_TAG_LIST, self._request("GET", "/tags"))
