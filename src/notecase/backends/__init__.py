"""Persistence backends."""

from .base import Backend
from .hosted import HostedBackend, HostedDatabase
from .local import LocalBackend
from .rest import RestBackend, TokenStore

__all__ = [
    "Backend",
    "HostedBackend",
    "HostedDatabase",
    "LocalBackend",
    "RestBackend",
    "TokenStore",
]
