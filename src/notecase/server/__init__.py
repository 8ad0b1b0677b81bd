"""FastAPI REST service backed by the hosted database."""

from .main import create_app

__all__ = ["create_app"]
