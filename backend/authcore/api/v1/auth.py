"""Authentication endpoints backed by :class:`SessionService`."""

from __future__ import annotations

from flask import Blueprint, request

from authcore.api.deps import (
    REFRESH_COOKIE,
    clear_auth_cookies,
    current_user_id,
    envelope,
    get_session_service,
    require_auth,
    set_auth_cookies,
    timing,
)
from authcore.schemas import (
    ChangePasswordSchema,
    ForgotPasswordSchema,
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    ResetPasswordSchema,
    TokenPairSchema,
    UserSummarySchema,
)
from authcore.services.sessions.dto import (
    ChangePasswordIn,
    ForgotPasswordIn,
    LoginIn,
    RefreshIn,
    RegisterIn,
    ResetPasswordIn,
)

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshTokenSchema()
change_password_schema = ChangePasswordSchema()
forgot_password_schema = ForgotPasswordSchema()
reset_password_schema = ResetPasswordSchema()
token_schema = TokenPairSchema()
user_schema = UserSummarySchema()


def _body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@bp.post("/register")
@timing
def register():
    """Register a user and send the verification e-mail."""

    data = register_schema.load(_body())
    user = get_session_service().register(RegisterIn(**data))
    return envelope(
        {"user": user_schema.dump(user)},
        "User registered successfully and verification email has been sent on your email",
        status=201,
    )


@bp.post("/login")
@timing
def login():
    """Authenticate credentials and open a session (cookies + body tokens)."""

    data = login_schema.load(_body())
    result = get_session_service().login(LoginIn(**data))
    response = envelope(
        {
            "user": user_schema.dump(result.user),
            **token_schema.dump(result),
        },
        "User logged in successfully",
    )
    return set_auth_cookies(
        response,
        access_token=result.access_token,
        access_expires_at=result.access_token_expires_at,
        refresh_token=result.refresh_token,
        refresh_expires_at=result.refresh_token_expires_at,
    )


@bp.post("/logout")
@require_auth
@timing
def logout():
    get_session_service().logout(current_user_id())
    return clear_auth_cookies(envelope({}, "User logged out"))


@bp.post("/refresh-token")
@timing
def refresh_token():
    """Rotate the session using the refresh token from body or cookie."""

    data = refresh_schema.load(_body())
    token = data.get("refresh_token") or request.cookies.get(REFRESH_COOKIE) or ""
    pair = get_session_service().refresh(RefreshIn(refresh_token=token))
    response = envelope(token_schema.dump(pair), "Access token refreshed")
    rotated = pair.refresh_token_expires_at is not None
    return set_auth_cookies(
        response,
        access_token=pair.access_token,
        access_expires_at=pair.access_token_expires_at,
        refresh_token=pair.refresh_token if rotated else None,
        refresh_expires_at=pair.refresh_token_expires_at,
    )


@bp.get("/me")
@require_auth
@timing
def current_user():
    user = get_session_service().get_current_user(current_user_id())
    return envelope(user_schema.dump(user), "Current user fetched successfully")


@bp.get("/verify-email/<string:token>")
@timing
def verify_email(token: str):
    result = get_session_service().verify_email(token)
    return envelope({"isEmailVerified": result.is_email_verified}, "Email is verified")


@bp.post("/resend-email-verification")
@require_auth
@timing
def resend_email_verification():
    get_session_service().resend_email_verification(current_user_id())
    return envelope({}, "Mail has been sent to your email ID")


@bp.post("/change-password")
@require_auth
@timing
def change_password():
    data = change_password_schema.load(_body())
    get_session_service().change_password(ChangePasswordIn(user_id=current_user_id(), **data))
    return envelope({}, "Password changed successfully")


@bp.post("/forgot-password")
@timing
def forgot_password():
    data = forgot_password_schema.load(_body())
    get_session_service().forgot_password(ForgotPasswordIn(**data))
    return envelope({}, "Password reset mail has been sent on your mail id")


@bp.post("/reset-password/<string:token>")
@timing
def reset_password(token: str):
    data = reset_password_schema.load(_body())
    get_session_service().reset_password(ResetPasswordIn(token=token, **data))
    return envelope({}, "Password reset successfully")
