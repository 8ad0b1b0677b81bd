"""Request payloads and the response envelope of the REST service."""

from typing import Any

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Login payload."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    """Registration payload."""

    username: str = Field(min_length=1, max_length=150)
    email: str = ""
    password: str = Field(min_length=1)


def envelope(data: Any = None, **extra: Any) -> dict[str, Any]:  # noqa: ANN401
    """Wrap ``data`` in the ``{"success": true, "data": ...}`` envelope."""
    return {"success": True, "data": data, **extra}


def error_envelope(message: str) -> dict[str, Any]:
    """Return the failure envelope for ``message``."""
    return {"success": False, "error": message}
