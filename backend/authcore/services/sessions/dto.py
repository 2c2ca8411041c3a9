"""
DTOs for SessionService.

Data Transfer Objects isolate the service layer from ORM models and from the
web layer, giving every flow a typed input/output contract. ``AuthSettings``
is the frozen, process-wide configuration injected into the credential
components.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

DEFAULT_VERIFICATION_URL = "/api/v1/auth/verify-email/{token}"
DEFAULT_RESET_URL = "/api/v1/auth/reset-password/{token}"

# --------------------------------------------------------------------------- #
# Settings
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthSettings:
    """
    Read-only credential configuration.

    :param access_token_secret: HMAC key for access tokens.
    :type access_token_secret: str
    :param refresh_token_secret: HMAC key for refresh tokens.
    :type refresh_token_secret: str
    :param access_token_ttl: Access token lifetime.
    :type access_token_ttl: timedelta
    :param refresh_token_ttl: Refresh token lifetime.
    :type refresh_token_ttl: timedelta
    :param jwt_algorithm: Signing algorithm.
    :type jwt_algorithm: str
    :param jwt_issuer: Optional ``iss`` claim.
    :type jwt_issuer: str | None
    :param password_hash_method: Werkzeug hash method string (fixed cost).
    :type password_hash_method: str
    :param password_salt_length: Salt length for password hashes.
    :type password_salt_length: int
    :param ephemeral_token_ttl: Lifetime of verify/reset secrets.
    :type ephemeral_token_ttl: timedelta
    :param rotate_refresh_tokens: Issue a new refresh token on refresh.
    :type rotate_refresh_tokens: bool
    :param revoke_sessions_on_password_change: Clear the refresh reference on change.
    :type revoke_sessions_on_password_change: bool
    :param email_verification_url: Link template containing ``{token}``.
    :type email_verification_url: str
    :param password_reset_url: Link template containing ``{token}``.
    :type password_reset_url: str
    """

    access_token_secret: str
    refresh_token_secret: str
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=7)
    jwt_algorithm: str = "HS256"
    jwt_issuer: str | None = None
    password_hash_method: str = "scrypt:32768:8:1"
    password_salt_length: int = 16
    ephemeral_token_ttl: timedelta = timedelta(minutes=20)
    rotate_refresh_tokens: bool = True
    revoke_sessions_on_password_change: bool = True
    email_verification_url: str = DEFAULT_VERIFICATION_URL
    password_reset_url: str = DEFAULT_RESET_URL

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> AuthSettings:
        """Build settings from a Flask config mapping."""
        return cls(
            access_token_secret=str(config["ACCESS_TOKEN_SECRET"]),
            refresh_token_secret=str(config["REFRESH_TOKEN_SECRET"]),
            access_token_ttl=timedelta(minutes=int(config.get("ACCESS_TOKEN_EXPIRES_MINUTES", 15))),
            refresh_token_ttl=timedelta(days=int(config.get("REFRESH_TOKEN_EXPIRES_DAYS", 7))),
            jwt_algorithm=str(config.get("JWT_ALGORITHM", "HS256")),
            jwt_issuer=config.get("JWT_ISSUER") or None,
            password_hash_method=str(config.get("PASSWORD_HASH_METHOD", "scrypt:32768:8:1")),
            password_salt_length=int(config.get("PASSWORD_SALT_LENGTH", 16)),
            ephemeral_token_ttl=timedelta(
                minutes=int(config.get("EPHEMERAL_TOKEN_TTL_MINUTES", 20))
            ),
            rotate_refresh_tokens=bool(config.get("ROTATE_REFRESH_TOKENS", True)),
            revoke_sessions_on_password_change=bool(
                config.get("REVOKE_SESSIONS_ON_PASSWORD_CHANGE", True)
            ),
            email_verification_url=str(
                config.get("EMAIL_VERIFICATION_URL", DEFAULT_VERIFICATION_URL)
            ),
            password_reset_url=str(config.get("PASSWORD_RESET_URL", DEFAULT_RESET_URL)),
        )

    def verification_link(self, token: str) -> str:
        return self.email_verification_url.format(token=token)

    def reset_link(self, token: str) -> str:
        return self.password_reset_url.format(token=token)


# --------------------------------------------------------------------------- #
# Input DTOs
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for registration.

    :param email: Login email (normalized to lowercase).
    :type email: str
    :param username: Public username (normalized to lowercase).
    :type username: str
    :param password: Raw password, hashed by the service.
    :type password: str
    :param full_name: Optional real name.
    :type full_name: str | None
    """

    email: str
    username: str
    password: str
    full_name: str | None = None


@dataclass(frozen=True, slots=True)
class LoginIn:
    email: str
    password: str


@dataclass(frozen=True, slots=True)
class RefreshIn:
    refresh_token: str


@dataclass(frozen=True, slots=True)
class ChangePasswordIn:
    """
    Input DTO for changing a password while authenticated.

    :param user_id: Authenticated user identifier.
    :type user_id: int
    :param old_password: Current password.
    :type old_password: str
    :param new_password: Replacement password.
    :type new_password: str
    """

    user_id: int
    old_password: str
    new_password: str


@dataclass(frozen=True, slots=True)
class ForgotPasswordIn:
    email: str


@dataclass(frozen=True, slots=True)
class ResetPasswordIn:
    """
    Input DTO for completing a password reset.

    :param token: Plaintext reset secret received by e-mail.
    :type token: str
    :param new_password: Replacement password.
    :type new_password: str
    """

    token: str
    new_password: str


# --------------------------------------------------------------------------- #
# Output DTOs
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class UserSummaryOut:
    """
    Public-safe view of a user. Never carries the password hash, the refresh
    reference or any pending secret.
    """

    id: int
    email: str
    username: str
    full_name: str | None
    avatar_url: str
    is_email_verified: bool
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Tokens returned by a refresh.

    :param access_token: New access token.
    :type access_token: str
    :param access_token_expires_at: Access token expiry.
    :type access_token_expires_at: datetime
    :param refresh_token: Refresh token the client must keep (new when rotated).
    :type refresh_token: str
    :param refresh_token_expires_at: Expiry of ``refresh_token``, ``None`` when
        the presented token was kept.
    :type refresh_token_expires_at: datetime | None
    """

    access_token: str
    access_token_expires_at: datetime
    refresh_token: str
    refresh_token_expires_at: datetime | None


@dataclass(frozen=True, slots=True)
class LoginOut:
    user: UserSummaryOut
    access_token: str
    access_token_expires_at: datetime
    refresh_token: str
    refresh_token_expires_at: datetime


@dataclass(frozen=True, slots=True)
class EmailVerifiedOut:
    is_email_verified: bool = True
