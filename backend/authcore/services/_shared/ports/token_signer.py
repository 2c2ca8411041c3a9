from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class TokenKind(str, Enum):
    """Kinds of signed session token; each kind has its own secret and lifetime."""

    ACCESS = "access"
    REFRESH = "refresh"


class InvalidToken(Exception):
    """Opaque verification failure (bad signature, shape, kind or expiry)."""


@dataclass(frozen=True, slots=True)
class IssuedToken:
    """
    Freshly signed token and the metadata callers persist or return.

    :param token: Encoded token string.
    :type token: str
    :param jti: Unique token id embedded in the claims.
    :type jti: str
    :param expires_at: Absolute expiry (UTC).
    :type expires_at: datetime
    """

    token: str
    jti: str
    expires_at: datetime


class TokenSigner(Protocol):
    """Port for issuing and verifying expiring signed session tokens."""

    def issue(self, kind: TokenKind, claims: dict[str, Any]) -> IssuedToken: ...

    def verify(self, kind: TokenKind, token: str) -> dict[str, Any]: ...
