"""bcrypt-backed password hashing."""

from __future__ import annotations

import bcrypt


class BcryptPasswordHasher:
    """One-way password hashing with per-hash salts."""

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def encode(self, plaintext: str) -> str:
        """Return the bcrypt hash of ``plaintext`` as text suitable for storage."""
        hashed = bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds))
        return hashed.decode("utf-8")

    def matches(self, plaintext: str, hashed: str) -> bool:
        """Return ``True`` when ``plaintext`` hashes to ``hashed``."""
        if not plaintext or not hashed:
            return False
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # malformed stored hash or an over-long candidate
            return False
