"""
SessionService
==============

Application service owning the credential and token lifecycle of the
``User`` aggregate:

- Registration with e-mail verification
- Password login, logout and refresh-token rotation
- E-mail verification and re-sending of the verification secret
- Password change and the forgot/reset password flow

Every flow runs inside one read-write Unit of Work. E-mail is dispatched only
after the transaction committed; delivery failures are logged and swallowed.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from authcore.infra.crypto.ephemeral_tokens import EphemeralTokenGenerator
from authcore.infra.crypto.password_hasher import WerkzeugPasswordHasher
from authcore.infra.jwt.pyjwt_token_signer import PyJWTTokenSigner
from authcore.infra.mail.content import email_verification_content, forgot_password_content
from authcore.models.user import SecretPurpose, User
from authcore.services._shared.base import BaseService
from authcore.services._shared.errors import (
    BadRequestError,
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
)
from authcore.services._shared.ports import (
    Clock,
    EmailDispatcher,
    InvalidToken,
    IssuedToken,
    OutboundEmail,
    PasswordHasher,
    SystemClock,
    TokenKind,
    TokenSigner,
)
from authcore.services.sessions.dto import (
    AuthSettings,
    ChangePasswordIn,
    EmailVerifiedOut,
    ForgotPasswordIn,
    LoginIn,
    LoginOut,
    RefreshIn,
    RegisterIn,
    ResetPasswordIn,
    TokenPairOut,
    UserSummaryOut,
)
from authcore.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)

INVALID_ONE_TIME_TOKEN = "Token is invalid or expired"
INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
REFRESH_TOKEN_REVOKED = "Refresh token is expired or used"


def _clean(value: str | None) -> str:
    return value.strip() if isinstance(value, str) else ""


class SessionService(BaseService):
    """
    Credential and token lifecycle manager.

    :param settings: Frozen credential settings.
    :type settings: AuthSettings
    :param hasher: Password hasher.
    :type hasher: PasswordHasher
    :param signer: Access/refresh token signer.
    :type signer: TokenSigner
    :param tokens: Generator of e-mail verification and reset secrets.
    :type tokens: EphemeralTokenGenerator
    :param mailer: Outbound e-mail port.
    :type mailer: EmailDispatcher
    :param clock: Time source shared with ``signer`` and ``tokens``.
    :type clock: Clock
    """

    def __init__(
        self,
        *,
        settings: AuthSettings,
        hasher: PasswordHasher,
        signer: TokenSigner,
        tokens: EphemeralTokenGenerator,
        mailer: EmailDispatcher,
        clock: Clock,
    ) -> None:
        self.settings = settings
        self.hasher = hasher
        self.signer = signer
        self.tokens = tokens
        self.mailer = mailer
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: AuthSettings,
        *,
        mailer: EmailDispatcher,
        clock: Clock | None = None,
    ) -> SessionService:
        """Wire the default werkzeug/PyJWT/secrets adapters around ``settings``."""
        clock = clock or SystemClock()
        return cls(
            settings=settings,
            hasher=WerkzeugPasswordHasher(
                method=settings.password_hash_method,
                salt_length=settings.password_salt_length,
            ),
            signer=PyJWTTokenSigner(settings, clock),
            tokens=EphemeralTokenGenerator(settings.ephemeral_token_ttl, clock),
            mailer=mailer,
            clock=clock,
        )

    # --------------------------------------------------------------------- #
    # Helpers
    # --------------------------------------------------------------------- #

    @contextmanager
    def _transaction(self, event: str) -> Iterator[SQLAlchemyUnitOfWork]:
        """Run a read-write UoW, mapping persistence failures to service errors."""
        try:
            with self.rw_uow() as uow:
                yield uow
        except StaleDataError as exc:
            log.warning("Concurrent modification", extra={"event": f"{event}.conflict"})
            raise self.translate_stale(exc) from exc
        except SQLAlchemyError as exc:
            log.error("Persistence failure", exc_info=True, extra={"event": f"{event}.error"})
            raise InternalError() from exc

    def _issue(self, kind: TokenKind, claims: dict[str, Any], *, event: str) -> IssuedToken:
        try:
            return self.signer.issue(kind, claims)
        except Exception as exc:
            log.error(
                "Token issuing failed",
                exc_info=True,
                extra={"event": f"{event}.error", "user_id": claims.get("sub")},
            )
            raise InternalError("Something went wrong while generating tokens") from exc

    def _issue_access(self, user: User, *, event: str) -> IssuedToken:
        claims = {"sub": str(user.id), "email": user.email, "username": user.username}
        return self._issue(TokenKind.ACCESS, claims, event=event)

    def _issue_refresh(self, user: User, *, event: str) -> IssuedToken:
        return self._issue(TokenKind.REFRESH, {"sub": str(user.id)}, event=event)

    def _dispatch(self, message: OutboundEmail, *, event: str, user_id: int) -> bool:
        try:
            self.mailer.send(message)
        except Exception:
            log.warning(
                "E-mail dispatch failed",
                exc_info=True,
                extra={"event": f"{event}.mail_failed", "user_id": user_id},
            )
            return False
        log.info("E-mail dispatched", extra={"event": f"{event}.mail_sent", "user_id": user_id})
        return True

    def _verification_email(self, user: User, plaintext: str) -> OutboundEmail:
        return OutboundEmail(
            recipient=user.email,
            subject="Please verify your email",
            content=email_verification_content(
                user.username, self.settings.verification_link(plaintext)
            ),
        )

    def _reset_email(self, user: User, plaintext: str) -> OutboundEmail:
        return OutboundEmail(
            recipient=user.email,
            subject="Password reset request",
            content=forgot_password_content(user.username, self.settings.reset_link(plaintext)),
        )

    def _consume_pending(self, uow: SQLAlchemyUnitOfWork, purpose: SecretPurpose, token: str) -> User:
        """Return the user whose live pending secret matches ``token``.

        Unknown, mismatched and expired secrets are indistinguishable.
        """
        user = uow.users.find_by_pending_secret(purpose, self.tokens.digest(token))
        secret = user.pending_secret(purpose) if user is not None else None
        if (
            user is None
            or secret is None
            or not self.tokens.matches(token, secret.hashed_value)
            or secret.is_expired(self.clock.now())
        ):
            raise BadRequestError(INVALID_ONE_TIME_TOKEN)
        user.clear_pending_secret(purpose)
        return user

    @staticmethod
    def _summary(user: User) -> UserSummaryOut:
        return UserSummaryOut(
            id=user.id,
            email=user.email,
            username=user.username,
            full_name=user.full_name,
            avatar_url=user.avatar_url,
            is_email_verified=bool(user.is_email_verified),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    # --------------------------------------------------------------------- #
    # Registration
    # --------------------------------------------------------------------- #

    def register(self, dto: RegisterIn) -> UserSummaryOut:
        """
        Register a new, unverified user and send the verification e-mail.

        :param dto: Registration input.
        :type dto: RegisterIn
        :returns: Public-safe summary of the new user.
        :rtype: UserSummaryOut
        :raises BadRequestError: If email, username or password is missing, or
            the email is malformed.
        :raises ConflictError: If the email or username is taken.
        """
        email = _clean(dto.email).lower()
        username = _clean(dto.username).lower()
        if not email or not username or not dto.password:
            raise BadRequestError("Email, username and password are required")

        with self._transaction("auth.register") as uow:
            if uow.users.find_by_identity(email=email, username=username) is not None:
                raise ConflictError("User", "User with email or username already exists")

            password_hash = self.hasher.hash(dto.password)
            try:
                user = uow.users.create(
                    email=email,
                    username=username,
                    full_name=dto.full_name,
                    password_hash=password_hash,
                )
            except ValueError as exc:
                raise BadRequestError(str(exc)) from exc
            secret = self.tokens.generate()
            user.set_pending_secret(
                SecretPurpose.EMAIL_VERIFICATION, secret.hashed_value, secret.expires_at
            )
            uow.users.save(user)
            summary = self._summary(user)
            message = self._verification_email(user, secret.plaintext)

        log.info("User registered", extra={"event": "auth.register", "user_id": summary.id})
        self._dispatch(message, event="auth.register", user_id=summary.id)
        return summary

    # --------------------------------------------------------------------- #
    # Sessions
    # --------------------------------------------------------------------- #

    def login(self, dto: LoginIn) -> LoginOut:
        """
        Verify credentials and open the user's single active session.

        A previously issued refresh token stops working once its reference is
        replaced.

        :param dto: Login input.
        :type dto: LoginIn
        :returns: User summary plus an access/refresh token pair.
        :rtype: LoginOut
        :raises BadRequestError: If email or password is missing.
        :raises NotFoundError: If no user has that email.
        :raises UnauthorizedError: If the password does not match.
        :raises InternalError: If tokens cannot be issued or stored.
        """
        email = _clean(dto.email).lower()
        if not email:
            raise BadRequestError("Email is required")
        if not dto.password:
            raise BadRequestError("Password is required")

        with self._transaction("auth.login") as uow:
            user = uow.users.find_by_identity(email=email)
            if user is None:
                log.info("Login for unknown account", extra={"event": "auth.login.failed"})
                raise NotFoundError("User", email)
            if not self.hasher.verify(dto.password, user.password_hash):
                log.warning(
                    "Login with wrong password",
                    extra={"event": "auth.login.failed", "user_id": user.id},
                )
                raise UnauthorizedError(INVALID_CREDENTIALS)

            access = self._issue_access(user, event="auth.login")
            refresh = self._issue_refresh(user, event="auth.login")
            user.refresh_token_jti = refresh.jti
            uow.users.save(user)
            summary = self._summary(user)

        log.info("User logged in", extra={"event": "auth.login", "user_id": summary.id})
        return LoginOut(
            user=summary,
            access_token=access.token,
            access_token_expires_at=access.expires_at,
            refresh_token=refresh.token,
            refresh_token_expires_at=refresh.expires_at,
        )

    def logout(self, user_id: int) -> None:
        """
        Revoke the user's refresh reference. Repeating it is harmless.

        Access tokens already issued stay valid until they expire.

        :param user_id: Authenticated user identifier.
        :type user_id: int
        :raises NotFoundError: If the user no longer exists.
        """
        with self._transaction("auth.logout") as uow:
            user = uow.users.find_by_id(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            if user.refresh_token_jti is not None:
                user.revoke_refresh_token()
                uow.users.save(user)

        log.info("User logged out", extra={"event": "auth.logout", "user_id": user_id})

    def refresh(self, dto: RefreshIn) -> TokenPairOut:
        """
        Exchange a live refresh token for a new access token.

        With rotation enabled a new refresh token replaces the presented one;
        of two concurrent refreshes with the same token at most one succeeds.

        :param dto: Refresh input.
        :type dto: RefreshIn
        :returns: New access token and the refresh token to keep.
        :rtype: TokenPairOut
        :raises BadRequestError: If no token is given.
        :raises UnauthorizedError: If the token is invalid, expired, revoked or superseded.
        :raises ConflictError: If a concurrent refresh won the race.
        """
        token = _clean(dto.refresh_token)
        if not token:
            raise BadRequestError("Refresh token is required")

        try:
            claims = self.signer.verify(TokenKind.REFRESH, token)
            user_id = int(claims["sub"])
        except (InvalidToken, KeyError, TypeError, ValueError) as exc:
            log.warning("Rejected refresh token", extra={"event": "auth.refresh.failed"})
            raise UnauthorizedError(INVALID_REFRESH_TOKEN) from exc

        with self._transaction("auth.refresh") as uow:
            user = uow.users.find_by_id(user_id)
            if user is None:
                raise UnauthorizedError(INVALID_REFRESH_TOKEN)
            stored = user.refresh_token_jti or ""
            presented = str(claims.get("jti") or "")
            if not stored or not hmac.compare_digest(stored, presented):
                log.warning(
                    "Revoked or superseded refresh token",
                    extra={"event": "auth.refresh.failed", "user_id": user_id},
                )
                raise UnauthorizedError(REFRESH_TOKEN_REVOKED)

            access = self._issue_access(user, event="auth.refresh")
            if self.settings.rotate_refresh_tokens:
                rotated = self._issue_refresh(user, event="auth.refresh")
                user.refresh_token_jti = rotated.jti
                uow.users.save(user)
                pair = TokenPairOut(
                    access_token=access.token,
                    access_token_expires_at=access.expires_at,
                    refresh_token=rotated.token,
                    refresh_token_expires_at=rotated.expires_at,
                )
            else:
                pair = TokenPairOut(
                    access_token=access.token,
                    access_token_expires_at=access.expires_at,
                    refresh_token=token,
                    refresh_token_expires_at=None,
                )

        log.info("Access token refreshed", extra={"event": "auth.refresh", "user_id": user_id})
        return pair

    def authenticate(self, access_token: str | None) -> int:
        """
        Resolve an access token to the id of an existing user.

        :param access_token: Encoded access token.
        :type access_token: str | None
        :returns: User id.
        :rtype: int
        :raises UnauthorizedError: If the token is missing, invalid, expired
            or its user no longer exists.
        """
        token = _clean(access_token)
        if not token:
            raise UnauthorizedError("Unauthorized request")
        try:
            claims = self.signer.verify(TokenKind.ACCESS, token)
            user_id = int(claims["sub"])
        except (InvalidToken, KeyError, TypeError, ValueError) as exc:
            raise UnauthorizedError("Invalid access token") from exc

        with self.ro_uow() as uow:
            if uow.users.find_by_id(user_id) is None:
                raise UnauthorizedError("Invalid access token")
        return user_id

    def get_current_user(self, user_id: int) -> UserSummaryOut:
        """
        :raises NotFoundError: If the user does not exist.
        """
        with self.ro_uow() as uow:
            user = uow.users.find_by_id(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return self._summary(user)

    # --------------------------------------------------------------------- #
    # E-mail verification
    # --------------------------------------------------------------------- #

    def verify_email(self, token: str) -> EmailVerifiedOut:
        """
        Consume an e-mail verification secret and mark the address verified.

        :param token: Plaintext secret from the verification link.
        :type token: str
        :returns: Verification outcome.
        :rtype: EmailVerifiedOut
        :raises BadRequestError: If the token is missing, unknown or expired.
        """
        token = _clean(token)
        if not token:
            raise BadRequestError("Email verification token is missing")

        with self._transaction("auth.verify_email") as uow:
            user = self._consume_pending(uow, SecretPurpose.EMAIL_VERIFICATION, token)
            user.is_email_verified = True
            uow.users.save(user)
            user_id = user.id

        log.info("E-mail verified", extra={"event": "auth.verify_email", "user_id": user_id})
        return EmailVerifiedOut(is_email_verified=True)

    def resend_email_verification(self, user_id: int) -> None:
        """
        Replace the pending verification secret and e-mail the new link.

        :param user_id: Authenticated user identifier.
        :type user_id: int
        :raises NotFoundError: If the user does not exist.
        :raises ConflictError: If the e-mail is already verified.
        """
        with self._transaction("auth.resend_verification") as uow:
            user = uow.users.find_by_id(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            if user.is_email_verified:
                raise ConflictError("User", "Email is already verified")

            secret = self.tokens.generate()
            user.set_pending_secret(
                SecretPurpose.EMAIL_VERIFICATION, secret.hashed_value, secret.expires_at
            )
            uow.users.save(user)
            message = self._verification_email(user, secret.plaintext)

        self._dispatch(message, event="auth.resend_verification", user_id=user_id)

    # --------------------------------------------------------------------- #
    # Password management
    # --------------------------------------------------------------------- #

    def change_password(self, dto: ChangePasswordIn) -> None:
        """
        Replace the password after checking the current one.

        :param dto: Change input.
        :type dto: ChangePasswordIn
        :raises BadRequestError: If either password is missing.
        :raises NotFoundError: If the user does not exist.
        :raises UnauthorizedError: If the current password is wrong.
        """
        if not dto.old_password or not dto.new_password:
            raise BadRequestError("Old and new password are required")

        with self._transaction("auth.change_password") as uow:
            user = uow.users.find_by_id(dto.user_id)
            if user is None:
                raise NotFoundError("User", dto.user_id)
            if not self.hasher.verify(dto.old_password, user.password_hash):
                log.warning(
                    "Password change with wrong current password",
                    extra={"event": "auth.change_password.failed", "user_id": user.id},
                )
                raise UnauthorizedError("Invalid old password")

            user.password_hash = self.hasher.hash(dto.new_password)
            if self.settings.revoke_sessions_on_password_change:
                user.revoke_refresh_token()
            uow.users.save(user)

        log.info(
            "Password changed", extra={"event": "auth.change_password", "user_id": dto.user_id}
        )

    def forgot_password(self, dto: ForgotPasswordIn) -> None:
        """
        Issue a password reset secret and e-mail the reset link.

        :param dto: Forgot-password input.
        :type dto: ForgotPasswordIn
        :raises BadRequestError: If the email is missing.
        :raises NotFoundError: If no user has that email.
        """
        email = _clean(dto.email).lower()
        if not email:
            raise BadRequestError("Email is required")

        with self._transaction("auth.forgot_password") as uow:
            user = uow.users.find_by_identity(email=email)
            if user is None:
                raise NotFoundError("User", email)

            secret = self.tokens.generate()
            user.set_pending_secret(
                SecretPurpose.PASSWORD_RESET, secret.hashed_value, secret.expires_at
            )
            uow.users.save(user)
            user_id = user.id
            message = self._reset_email(user, secret.plaintext)

        self._dispatch(message, event="auth.forgot_password", user_id=user_id)

    def reset_password(self, dto: ResetPasswordIn) -> None:
        """
        Consume a reset secret, replace the password and end the session.

        :param dto: Reset input.
        :type dto: ResetPasswordIn
        :raises BadRequestError: If token or password is missing, or the token
            is unknown or expired.
        """
        token = _clean(dto.token)
        if not token or not dto.new_password:
            raise BadRequestError("Reset token and new password are required")

        with self._transaction("auth.reset_password") as uow:
            user = self._consume_pending(uow, SecretPurpose.PASSWORD_RESET, token)
            user.password_hash = self.hasher.hash(dto.new_password)
            user.revoke_refresh_token()
            uow.users.save(user)
            user_id = user.id

        log.info("Password reset", extra={"event": "auth.reset_password", "user_id": user_id})


__all__ = ["SessionService"]
