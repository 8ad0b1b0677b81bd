"""Authentication endpoints."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status

from notecase.server.deps import CurrentUser, DatabaseDep, get_token
from notecase.server.schemas import LoginRequest, RegisterRequest, envelope

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/login")
def login_endpoint(payload: LoginRequest, database: DatabaseDep) -> dict[str, Any]:
    """Exchange credentials for a bearer token."""
    user = database.authenticate(payload.username, payload.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    token = database.issue_token(user.id)
    return envelope({"token": token, "user": user})


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register_endpoint(
    payload: RegisterRequest,
    database: DatabaseDep,
) -> dict[str, Any]:
    """Create an account and log it in."""
    user = database.register_user(
        payload.username.strip(),
        payload.email,
        payload.password,
    )
    token = database.issue_token(user.id)
    return envelope({"token": token, "user": user})


@router.post("/logout")
def logout_endpoint(
    token: Annotated[str, Depends(get_token)],
    database: DatabaseDep,
) -> dict[str, Any]:
    """Revoke the presented token."""
    database.revoke_token(token)
    return envelope(None)


@router.get("/me")
def me_endpoint(user: CurrentUser) -> dict[str, Any]:
    """Return the authenticated user."""
    return envelope(user)
