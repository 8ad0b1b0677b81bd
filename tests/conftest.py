"""Test configuration and fixtures."""

import uuid
from collections.abc import Generator
from pathlib import Path

import fsspec
import pytest
from fastapi.testclient import TestClient

from notecase.backends.hosted import HostedBackend, HostedDatabase
from notecase.backends.local import LocalBackend
from notecase.backends.rest import RestBackend, TokenStore
from notecase.config import Settings
from notecase.selector import DataSource, DataSourceSelector
from notecase.server import create_app
from notecase.storage import LocalKeyValueStore
from notecase.store import NoteStore

PUBLIC_IMAGE_URL = "https://cdn.example.test/notes"
API_BASE_URL = "http://testserver/api"


@pytest.fixture(params=["file", "memory"])
def kv_store(
    request: pytest.FixtureRequest,
    tmp_path: Path,
) -> Generator[LocalKeyValueStore]:
    """Key/value store on a local directory and on the fsspec memory filesystem."""
    if request.param == "file":
        yield LocalKeyValueStore(str(tmp_path / "store"))
        return
    root = f"memory://notecase-{uuid.uuid4().hex}"
    store = LocalKeyValueStore(root)
    yield store
    fs = fsspec.filesystem("memory")
    if fs.exists(store.root):
        fs.rm(store.root, recursive=True)


@pytest.fixture
def local_kv(tmp_path: Path) -> LocalKeyValueStore:
    """Single file-backed store for tests that do not need both filesystems."""
    return LocalKeyValueStore(str(tmp_path / "local"))


@pytest.fixture
def local_backend(local_kv: LocalKeyValueStore) -> LocalBackend:
    return LocalBackend(local_kv)


@pytest.fixture
def local_settings(tmp_path: Path) -> Settings:
    """Settings without any networked credentials."""
    return Settings(local_root=str(tmp_path / "local"))


@pytest.fixture
def note_store(local_settings: Settings, local_backend: LocalBackend) -> NoteStore:
    """Note store over the local backend."""
    selector = DataSourceSelector(
        local_settings,
        {DataSource.LOCAL: lambda: local_backend},
    )
    store = NoteStore(selector)
    store.load()
    return store


@pytest.fixture
def bucket_url() -> Generator[str]:
    """A fresh in-memory image bucket."""
    url = f"memory://bucket-{uuid.uuid4().hex}"
    yield url
    fs, path = fsspec.core.url_to_fs(url)
    if fs.exists(path):
        fs.rm(path, recursive=True)


@pytest.fixture
def database(bucket_url: str) -> Generator[HostedDatabase]:
    """Hosted database on in-memory SQLite with an in-memory bucket."""
    db = HostedDatabase("sqlite://", bucket_url, public_base_url=PUBLIC_IMAGE_URL)
    yield db
    db.dispose()


@pytest.fixture
def hosted_backend(database: HostedDatabase) -> HostedBackend:
    """Hosted backend bound to a freshly registered owner."""
    user = database.register_user("alice", "alice@example.test", "s3cret")
    return HostedBackend(database, owner_id=user.id)


@pytest.fixture
def test_client(database: HostedDatabase) -> Generator[TestClient]:
    """REST service client over the in-memory hosted database."""
    app = create_app(database, settings=Settings())
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers(test_client: TestClient) -> dict[str, str]:
    """Register a user through the API and return its bearer header."""
    response = test_client.post(
        "/api/auth/register",
        json={"username": "bob", "email": "bob@example.test", "password": "hunter2"},
    )
    assert response.status_code == 201
    token = response.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def rest_backend(test_client: TestClient, local_kv: LocalKeyValueStore) -> RestBackend:
    """REST backend logged in to the in-process service."""
    backend = RestBackend(API_BASE_URL, TokenStore(local_kv), client=test_client)
    backend.register("carol", "carol@example.test", "pa55word")
    return backend
