from __future__ import annotations

from werkzeug.security import check_password_hash, generate_password_hash

from authcore.services._shared.ports import PasswordHasher


class WerkzeugPasswordHasher(PasswordHasher):
    """
    Password hasher backed by :mod:`werkzeug.security`.

    The stored string embeds method, cost parameters and a per-call random
    salt, so verification needs nothing but the hash itself.

    :param method: Werkzeug method string with fixed cost, e.g. ``scrypt:32768:8:1``.
    :type method: str
    :param salt_length: Salt length in characters.
    :type salt_length: int
    """

    def __init__(self, method: str = "scrypt:32768:8:1", salt_length: int = 16) -> None:
        self.method = method
        self.salt_length = salt_length

    def hash(self, plaintext: str) -> str:
        """
        :raises ValueError: If ``plaintext`` is empty or not a string.
        """
        if not isinstance(plaintext, str) or not plaintext:
            raise ValueError("Password must be a non-empty string.")
        return generate_password_hash(plaintext, method=self.method, salt_length=self.salt_length)

    def verify(self, plaintext: str, hashed: str) -> bool:
        if not isinstance(plaintext, str) or not isinstance(hashed, str) or not hashed:
            return False
        try:
            return check_password_hash(hashed, plaintext)
        except (ValueError, TypeError):
            # unknown method or malformed parameters in the stored hash
            return False
