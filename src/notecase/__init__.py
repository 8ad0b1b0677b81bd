"""Notecase: personal notes organized by category, subcategory and tag."""

from .actions import NoteActions, Notification, Notifier
from .auth import (
    Authenticator,
    DemoCredentialStrategy,
    HostedAuthStrategy,
    LocalUserStrategy,
    RestAuthStrategy,
)
from .backends import (
    Backend,
    HostedBackend,
    HostedDatabase,
    LocalBackend,
    RestBackend,
    TokenStore,
)
from .config import Settings, get_settings
from .errors import (
    AuthenticationError,
    BackendError,
    ConfigurationError,
    ImageValidationError,
    InputValidationError,
    NotecaseError,
)
from .models import (
    AuthUser,
    Category,
    CategoryCreate,
    CategoryUpdate,
    Note,
    NoteCreate,
    NotePage,
    NoteUpdate,
    SelectionState,
    Subcategory,
    SubcategoryCreate,
    SubcategoryUpdate,
)
from .selection import SelectionStore
from .selector import DataSource, DataSourceSelector
from .session import Session, create_session
from .storage import LocalKeyValueStore
from .store import NoteStore

__all__ = [
    "AuthUser",
    "AuthenticationError",
    "Authenticator",
    "Backend",
    "BackendError",
    "Category",
    "CategoryCreate",
    "CategoryUpdate",
    "ConfigurationError",
    "DataSource",
    "DataSourceSelector",
    "DemoCredentialStrategy",
    "HostedAuthStrategy",
    "HostedBackend",
    "HostedDatabase",
    "ImageValidationError",
    "InputValidationError",
    "LocalBackend",
    "LocalKeyValueStore",
    "LocalUserStrategy",
    "Note",
    "NoteActions",
    "NoteCreate",
    "NotePage",
    "NoteStore",
    "NoteUpdate",
    "NotecaseError",
    "Notification",
    "Notifier",
    "RestAuthStrategy",
    "RestBackend",
    "SelectionState",
    "SelectionStore",
    "Session",
    "Settings",
    "Subcategory",
    "SubcategoryCreate",
    "SubcategoryUpdate",
    "TokenStore",
    "create_session",
    "get_settings",
]
