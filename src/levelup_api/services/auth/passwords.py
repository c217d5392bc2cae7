"""Salted PBKDF2 password hashing."""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

from levelup_api.core.settings import settings

ALGORITHM = "pbkdf2_sha256"
SALT_BYTES = 16


def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _derive(password: str, salt: str, iterations: int) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), iterations)
    return _b64(digest)


def hash_password(password: str, *, iterations: int | None = None) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt>$<digest>``."""

    rounds = iterations or settings.password_hash_iterations
    salt = _b64(secrets.token_bytes(SALT_BYTES))
    return f"{ALGORITHM}${rounds}${salt}${_derive(password, salt, rounds)}"


def verify_password(password: str, encoded: str | None) -> bool:
    if not encoded:
        return False
    try:
        algorithm, rounds, salt, expected = encoded.split("$", 3)
        iterations = int(rounds)
    except ValueError:
        return False
    if algorithm != ALGORITHM:
        return False
    return hmac.compare_digest(_derive(password, salt, iterations), expected)


__all__ = ["hash_password", "verify_password"]
