from __future__ import annotations

from typing import Protocol


class PasswordHasher(Protocol):
    """Port for one-way password hashing and constant-time verification.

    ``hash`` raises :class:`ValueError` on empty input; ``verify`` never raises
    and answers ``False`` for anything malformed.
    """

    def hash(self, plaintext: str) -> str: ...

    def verify(self, plaintext: str, hashed: str) -> bool: ...
