"""Password hashing and verification backed by bcrypt.

Plaintext passwords and their hashes are never logged.
"""

from __future__ import annotations

import re

import bcrypt

from ..domain.errors import CorruptHash, InvalidInput

# bcrypt only reads the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72

_BCRYPT_HASH = re.compile(r"^\$2[abxy]\$\d{2}\$[./A-Za-z0-9]{53}$")


class PasswordHasher:
    """Salted one-way hashing with a tunable bcrypt cost factor."""

    def __init__(self, rounds: int = 10) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self._rounds = rounds

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plaintext: str | None) -> str:
        """Hash a plaintext password with a fresh salt.

        Raises
        ------
        InvalidInput
            When the password is empty or longer than bcrypt can consume.
        """
        secret = self._encode(plaintext)
        return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=self._rounds)).decode("ascii")

    def verify(self, plaintext: str | None, hashed: str) -> bool:
        """Return ``True`` when ``plaintext`` matches ``hashed``.

        A mismatch is ``False``, not an error. ``CorruptHash`` is raised only
        when ``hashed`` is not a bcrypt hash.
        """
        if not isinstance(hashed, str) or not _BCRYPT_HASH.match(hashed):
            raise CorruptHash()
        if not plaintext:
            return False
        secret = plaintext.encode("utf-8")
        if len(secret) > MAX_PASSWORD_BYTES:
            # never produced by hash(), so it cannot match
            return False
        try:
            return bcrypt.checkpw(secret, hashed.encode("ascii"))
        except ValueError as exc:
            raise CorruptHash() from exc

    def _encode(self, plaintext: str | None) -> bytes:
        if not plaintext:
            raise InvalidInput("Password is required")
        secret = plaintext.encode("utf-8")
        if len(secret) > MAX_PASSWORD_BYTES:
            raise InvalidInput(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
        return secret
