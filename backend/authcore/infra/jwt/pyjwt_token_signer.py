from __future__ import annotations

import math
import uuid
from datetime import UTC, datetime
from typing import Any

import jwt

from authcore.services._shared.ports import Clock, InvalidToken, IssuedToken, TokenKind, TokenSigner
from authcore.services.sessions.dto import AuthSettings

REQUIRED_CLAIMS = ("sub", "type", "iat", "exp", "jti")
RESERVED_CLAIMS = frozenset({"type", "iat", "exp", "jti", "iss"})


class PyJWTTokenSigner(TokenSigner):
    """
    Adapter for PyJWT issuing HMAC-signed access and refresh tokens.

    Each kind is signed with its own secret, so a token of one kind never
    verifies as the other. Expiry is evaluated against the injected clock
    instead of the wall clock.

    :param settings: Frozen credential settings (secrets, lifetimes, algorithm).
    :type settings: AuthSettings
    :param clock: Time source used for ``iat``/``exp`` and expiry checks.
    :type clock: Clock
    """

    def __init__(self, settings: AuthSettings, clock: Clock) -> None:
        self._settings = settings
        self._clock = clock

    def _secret(self, kind: TokenKind) -> str:
        if kind is TokenKind.ACCESS:
            return self._settings.access_token_secret
        return self._settings.refresh_token_secret

    def _ttl(self, kind: TokenKind):
        if kind is TokenKind.ACCESS:
            return self._settings.access_token_ttl
        return self._settings.refresh_token_ttl

    def issue(self, kind: TokenKind, claims: dict[str, Any]) -> IssuedToken:
        """
        Sign a new token of ``kind`` carrying ``claims``.

        :param kind: Access or refresh.
        :type kind: TokenKind
        :param claims: Caller claims; must include ``sub``.
        :type claims: dict[str, Any]
        :returns: Encoded token with its ``jti`` and expiry.
        :rtype: IssuedToken
        :raises ValueError: If ``sub`` is missing or a reserved claim is supplied.
        """
        if not claims.get("sub"):
            raise ValueError("Token claims require a subject.")
        reserved = RESERVED_CLAIMS.intersection(claims)
        if reserved:
            raise ValueError(f"Reserved claims cannot be supplied: {sorted(reserved)}")

        # NumericDate claims are whole seconds; ``exp`` rounds up so a token
        # never expires before issue time plus its lifetime.
        issued_at = self._clock.now().timestamp()
        now = math.floor(issued_at)
        exp = math.ceil(issued_at + self._ttl(kind).total_seconds())
        jti = uuid.uuid4().hex
        payload: dict[str, Any] = {
            **claims,
            "sub": str(claims["sub"]),
            "type": kind.value,
            "iat": now,
            "exp": exp,
            "jti": jti,
        }
        if self._settings.jwt_issuer:
            payload["iss"] = self._settings.jwt_issuer

        token = jwt.encode(payload, self._secret(kind), algorithm=self._settings.jwt_algorithm)
        return IssuedToken(token=token, jti=jti, expires_at=datetime.fromtimestamp(exp, tz=UTC))

    def verify(self, kind: TokenKind, token: str) -> dict[str, Any]:
        """
        Verify signature, shape, kind and expiry of ``token``.

        :param kind: Expected kind.
        :type kind: TokenKind
        :param token: Encoded token.
        :type token: str
        :returns: Decoded claims.
        :rtype: dict[str, Any]
        :raises InvalidToken: On any failure; the cause is not exposed.
        """
        if not isinstance(token, str) or not token:
            raise InvalidToken()
        try:
            payload = jwt.decode(
                token,
                self._secret(kind),
                algorithms=[self._settings.jwt_algorithm],
                issuer=self._settings.jwt_issuer,
                options={
                    "require": list(REQUIRED_CLAIMS),
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_iss": bool(self._settings.jwt_issuer),
                },
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidToken() from exc

        if payload.get("type") != kind.value:
            raise InvalidToken()
        try:
            exp = int(payload["exp"])
        except (TypeError, ValueError) as exc:
            raise InvalidToken() from exc
        if exp <= self._clock.now().timestamp():
            raise InvalidToken()
        return payload
