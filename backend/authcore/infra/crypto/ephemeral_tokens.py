"""Single-use secrets for e-mail verification and password reset.

The plaintext goes out exactly once (inside an e-mail link); only its SHA-256
digest and an absolute expiry are stored on the user record.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from authcore.services._shared.ports import Clock

TOKEN_BYTES = 20


@dataclass(frozen=True, slots=True)
class EphemeralToken:
    """
    :param plaintext: Value handed to the user; never persisted.
    :type plaintext: str
    :param hashed_value: SHA-256 hex digest of ``plaintext``.
    :type hashed_value: str
    :param expires_at: Absolute expiry (UTC).
    :type expires_at: datetime
    """

    plaintext: str
    hashed_value: str
    expires_at: datetime


class EphemeralTokenGenerator:
    """Generate and check hashed, expiring one-time secrets.

    :param ttl: Lifetime of a generated secret.
    :type ttl: timedelta
    :param clock: Time source for ``expires_at``.
    :type clock: Clock
    """

    def __init__(self, ttl: timedelta, clock: Clock, *, nbytes: int = TOKEN_BYTES) -> None:
        self.ttl = ttl
        self.clock = clock
        self.nbytes = nbytes

    def generate(self) -> EphemeralToken:
        plaintext = secrets.token_hex(self.nbytes)
        return EphemeralToken(
            plaintext=plaintext,
            hashed_value=self.digest(plaintext),
            expires_at=self.clock.now() + self.ttl,
        )

    @staticmethod
    def digest(plaintext: str) -> str:
        """Return the SHA-256 hex digest of ``plaintext``."""
        return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()

    def matches(self, plaintext: str, hashed_value: str) -> bool:
        """Timing-safe comparison of ``plaintext`` against a stored digest."""
        if not isinstance(plaintext, str) or not isinstance(hashed_value, str):
            return False
        if not plaintext or not hashed_value:
            return False
        return hmac.compare_digest(self.digest(plaintext), hashed_value)
