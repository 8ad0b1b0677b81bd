"""Request dependencies: database, bearer token, current user and backend."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from notecase.backends.hosted import HostedBackend, HostedDatabase
from notecase.models import AuthUser
from notecase.utils import validate_id


def validate_path_id(identifier: str, name: str) -> None:
    """Reject path identifiers with unsafe characters."""
    try:
        validate_id(identifier, name)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


def get_database(request: Request) -> HostedDatabase:
    """Return the database attached to the application."""
    return request.app.state.database


def get_token(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Extract the bearer token from the ``Authorization`` header."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return token.strip()


def get_current_user(
    token: Annotated[str, Depends(get_token)],
    database: Annotated[HostedDatabase, Depends(get_database)],
) -> AuthUser:
    """Resolve the bearer token to its user."""
    user = database.resolve_token(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return user


def get_backend(
    user: Annotated[AuthUser, Depends(get_current_user)],
    database: Annotated[HostedDatabase, Depends(get_database)],
) -> HostedBackend:
    """Return a hosted backend scoped to the current user."""
    return HostedBackend(database, owner_id=user.id)


DatabaseDep = Annotated[HostedDatabase, Depends(get_database)]
CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
BackendDep = Annotated[HostedBackend, Depends(get_backend)]
