"""Main application module."""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from notecase.backends.hosted import HostedDatabase
from notecase.config import Settings
from notecase.errors import (
    AuthenticationError,
    BackendError,
    InputValidationError,
    NotecaseError,
)
from notecase.server.api import router as api_router
from notecase.server.schemas import envelope, error_envelope

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def _status_for(exc: NotecaseError) -> int:
    if isinstance(exc, AuthenticationError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(exc, InputValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, BackendError) and exc.status_code:
        return exc.status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def http_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Render ``HTTPException`` in the failure envelope."""
    assert isinstance(exc, HTTPException)  # noqa: S101
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(str(exc.detail)),
        headers=exc.headers,
    )


async def validation_exception_handler(
    _request: Request,
    exc: Exception,
) -> JSONResponse:
    """Render request validation failures as a 422 envelope."""
    assert isinstance(exc, RequestValidationError)  # noqa: S101
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content=error_envelope(f"Validation error: {details}"),
    )


async def notecase_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Map domain errors to HTTP status codes."""
    assert isinstance(exc, NotecaseError)  # noqa: S101
    code = _status_for(exc)
    if code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Request failed: %s", exc.message)
    return JSONResponse(status_code=code, content=error_envelope(exc.message))


def create_app(
    database: HostedDatabase | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Build the REST application.

    Args:
        database: Hosted database to serve; connected from ``settings`` when
            omitted.
        settings: Configuration; read from the environment when omitted.

    Raises:
        ConfigurationError: If no database is given and none is configured.

    """
    settings = settings or Settings.from_env()
    app = FastAPI(title="notecase")
    app.state.database = database or HostedDatabase.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        # ALLOW_ORIGIN (comma-separated) or fallback to localhost:3000
        allow_origins=list(settings.allow_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(NotecaseError, notecase_exception_handler)

    @app.get(f"{API_PREFIX}/health")
    def health() -> dict[str, Any]:
        """Liveness probe."""
        return envelope({"status": "ok"})

    app.include_router(api_router, prefix=API_PREFIX)
    return app
