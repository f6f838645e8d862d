"""One-way password hashing backed by bcrypt."""

from __future__ import annotations

import bcrypt

from ..errors import InvalidArgumentError

# bcrypt only considers the first 72 bytes of its input.
_MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def hash(self, password: str) -> str:
        raw = password.encode("utf-8")
        if not raw:
            raise InvalidArgumentError("password is required")
        if len(raw) > _MAX_PASSWORD_BYTES:
            raise InvalidArgumentError("password is too long")
        return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Return ``True`` when ``password`` matches the stored hash."""
        raw = password.encode("utf-8")
        if not raw or len(raw) > _MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(raw, password_hash.encode("utf-8"))
        except ValueError:
            # malformed stored hash
            return False
