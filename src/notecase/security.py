"""Password hashing and token helpers."""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
from typing import Final

PBKDF2_ALGORITHM: Final[str] = "pbkdf2_sha256"
PBKDF2_ITERATIONS: Final[int] = 240_000
SALT_BYTES: Final[int] = 16
TOKEN_BYTES: Final[int] = 32


def hash_password(password: str, *, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Return an encoded PBKDF2-SHA256 hash of ``password``.

    The result has the form ``pbkdf2_sha256$<iterations>$<salt>$<digest>``
    with base64 salt and digest.
    """
    salt = secrets.token_bytes(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return "$".join(
        [
            PBKDF2_ALGORITHM,
            str(iterations),
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(digest).decode("ascii"),
        ],
    )


def verify_password(password: str, encoded: str) -> bool:
    """Return True when ``password`` matches the ``encoded`` hash."""
    try:
        algorithm, iterations, salt_b64, digest_b64 = encoded.split("$")
        salt = base64.b64decode(salt_b64)
        expected = base64.b64decode(digest_b64)
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != PBKDF2_ALGORITHM:
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(candidate, expected)


def new_token() -> str:
    """Return a fresh URL-safe bearer token."""
    return secrets.token_urlsafe(TOKEN_BYTES)
