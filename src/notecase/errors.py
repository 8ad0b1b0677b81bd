"""Error types shared by stores, backends and the action boundary."""

from __future__ import annotations


class NotecaseError(Exception):
    """Base class for every error surfaced to the action boundary."""

    def __init__(self, message: str) -> None:
        """Store a human-readable ``message``."""
        super().__init__(message)
        self.message = message


class ConfigurationError(NotecaseError):
    """Raised when a networked data source is selected without credentials."""


class BackendError(NotecaseError):
    """Raised when a persistence backend call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Store the message and the HTTP status, when one applies."""
        super().__init__(message)
        self.status_code = status_code


class InputValidationError(NotecaseError):
    """Raised when required input is missing or invalid before any backend call."""


class ImageValidationError(InputValidationError):
    """Raised when an image exceeds the size ceiling or has an unsupported type."""


class AuthenticationError(NotecaseError):
    """Raised when no owner is authenticated or credentials are rejected."""
