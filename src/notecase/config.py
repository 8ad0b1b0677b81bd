"""Configuration settings read from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

DEFAULT_ROOT = "./.notecase"
DEFAULT_API_BASE_URL = "http://localhost:3000/api"
DEFAULT_ALLOW_ORIGIN = "http://localhost:3000"
DEFAULT_HTTP_TIMEOUT = 10.0
TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    The presence of networked credentials decides which data sources can be
    selected; with none of them set the application runs local-only.
    """

    local_root: str = DEFAULT_ROOT
    database_url: str | None = None
    storage_url: str | None = None
    public_image_url: str | None = None
    api_base_url: str | None = None
    data_source: str = "local"
    network_source: str = "hosted"
    persist_selection: bool = False
    demo_username: str | None = None
    demo_password: str | None = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    allow_origins: tuple[str, ...] = (DEFAULT_ALLOW_ORIGIN,)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``environ`` (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ
        return cls(
            local_root=env.get("NOTECASE_ROOT") or DEFAULT_ROOT,
            database_url=env.get("NOTECASE_DATABASE_URL") or None,
            storage_url=env.get("NOTECASE_STORAGE_URL") or None,
            public_image_url=env.get("NOTECASE_PUBLIC_IMAGE_URL") or None,
            api_base_url=env.get("NOTECASE_API_BASE_URL") or None,
            data_source=(env.get("NOTECASE_DATA_SOURCE") or "local").lower(),
            network_source=(env.get("NOTECASE_NETWORK_SOURCE") or "hosted").lower(),
            persist_selection=(
                env.get("NOTECASE_PERSIST_SELECTION", "").lower() in TRUTHY
            ),
            demo_username=env.get("NOTECASE_DEMO_USERNAME") or None,
            demo_password=env.get("NOTECASE_DEMO_PASSWORD") or None,
            http_timeout=float(
                env.get("NOTECASE_HTTP_TIMEOUT") or DEFAULT_HTTP_TIMEOUT,
            ),
            allow_origins=tuple(
                (env.get("ALLOW_ORIGIN") or DEFAULT_ALLOW_ORIGIN).split(","),
            ),
        )

    @property
    def hosted_configured(self) -> bool:
        """Return True when a parseable database URL and a bucket URL are set."""
        if not self.database_url or not self.storage_url:
            return False
        try:
            make_url(self.database_url)
        except ArgumentError:
            return False
        return True

    @property
    def rest_configured(self) -> bool:
        """Return True when an API base URL is set."""
        return bool(self.api_base_url)

    @property
    def local_only(self) -> bool:
        """Return True when no networked credentials are configured."""
        return not (self.hosted_configured or self.rest_configured)


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings.from_env()
