"""User identity record: credentials, session reference and pending secrets."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from authcore.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin, as_utc

DEFAULT_AVATAR_URL = "https://placehold.co/200x200"


class SecretPurpose(str, Enum):
    """Out-of-band flows that own a pending secret on the user record."""

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"

    @property
    def hash_column(self) -> str:
        return f"{self.value}_token_hash"

    @property
    def expiry_column(self) -> str:
        return f"{self.value}_expires_at"


@dataclass(frozen=True, slots=True)
class PendingSecret:
    """
    Hashed, expiring secret stored against a user.

    :param hashed_value: Digest of the plaintext handed to the user.
    :type hashed_value: str
    :param expires_at: Absolute expiry (UTC, aware).
    :type expires_at: datetime
    """

    hashed_value: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Return ``True`` once ``now`` reaches ``expires_at``."""
        return self.expires_at <= now


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authentication identity.

    Fields
    ------
    email : str
        Login email. Stored normalized (lowercase, trimmed).
    username : str
        Public handle, stored lowercase and trimmed. Unique per system.
    full_name : str | None
        Optional real name.
    avatar_url : str
        Profile picture URL (placeholder by default).
    password_hash : str
        One-way hash of the current password. Replaced wholesale, never empty.
    is_email_verified : bool
        Flips to ``True`` once, through e-mail verification.
    refresh_token_jti : str | None
        ``jti`` of the single live refresh token (single active session).
    email_verification_token_hash / email_verification_expires_at
        Pending e-mail verification secret.
    password_reset_token_hash / password_reset_expires_at
        Pending password reset secret.
    version : int
        Optimistic-locking counter bumped on every UPDATE.
    """

    __tablename__ = "users"

    # Columns
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    avatar_url: Mapped[str] = mapped_column(
        String(500), nullable=False, default=DEFAULT_AVATAR_URL
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    refresh_token_jti: Mapped[str | None] = mapped_column(String(64), nullable=True)

    email_verification_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    email_verification_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    password_reset_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    password_reset_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Constraints & indexes
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("username", name="uq_users_username"),
        Index("ix_users_email_verification_token_hash", "email_verification_token_hash"),
        Index("ix_users_password_reset_token_hash", "password_reset_token_hash"),
    )

    # Compare-and-swap on UPDATE; a lost race raises StaleDataError.
    __mapper_args__ = {"version_id_col": version}

    # -------------------- Pending secrets --------------------
    def pending_secret(self, purpose: SecretPurpose) -> PendingSecret | None:
        """
        Return the pending secret for ``purpose`` if one is stored.

        :param purpose: Flow owning the secret.
        :type purpose: SecretPurpose
        :returns: Stored secret (expired or not) or ``None``.
        :rtype: PendingSecret | None
        """
        hashed = getattr(self, purpose.hash_column)
        expires_at = as_utc(getattr(self, purpose.expiry_column))
        if not hashed or expires_at is None:
            return None
        return PendingSecret(hashed_value=hashed, expires_at=expires_at)

    def set_pending_secret(
        self, purpose: SecretPurpose, hashed_value: str, expires_at: datetime
    ) -> None:
        """Store a new secret for ``purpose``, overwriting any previous one."""
        setattr(self, purpose.hash_column, hashed_value)
        setattr(self, purpose.expiry_column, expires_at)

    def clear_pending_secret(self, purpose: SecretPurpose) -> None:
        """Drop the secret for ``purpose`` (consumed or superseded)."""
        setattr(self, purpose.hash_column, None)
        setattr(self, purpose.expiry_column, None)

    # -------------------- Session reference --------------------
    def revoke_refresh_token(self) -> None:
        """Forget the live refresh token; idempotent."""
        self.refresh_token_jti = None

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize and validate email.

        :raises ValueError: If email is missing or malformed.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = value.strip().lower()
        # Structural check only; the request schema owns full address validation.
        local, sep, domain = v.rpartition("@")
        if not sep or not local or not domain:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("username")
    def _normalize_username(self, key: str, value: str) -> str:
        """
        Normalize and validate username (lowercase, trimmed).

        :raises ValueError: If username is missing or only whitespace.
        """
        if not isinstance(value, str):
            raise ValueError("Username is required.")
        v = value.strip().lower()
        if not v:
            raise ValueError("Username is required.")
        return v

    @validates("full_name")
    def _normalize_full_name(self, key: str, value: str | None) -> str | None:
        if value is None:
            return None
        v = value.strip()
        return v or None

    @validates("password_hash")
    def _require_password_hash(self, key: str, value: str) -> str:
        if not isinstance(value, str) or not value:
            raise ValueError("Password hash must be a non-empty string.")
        return value

    def validate(self) -> None:
        """
        Re-run field validators against the current state.

        Used by the store when a caller asks for a validated save.

        :raises ValueError: If any field is invalid.
        """
        self._normalize_email("email", self.email)
        self._normalize_username("username", self.username)
        self._require_password_hash("password_hash", self.password_hash)
