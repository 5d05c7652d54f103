"""Password hashing."""

from __future__ import annotations

import hashlib


def hash_password(password: str) -> str:
    """Return the lowercase hex SHA-256 digest of the UTF-8 encoded password."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()