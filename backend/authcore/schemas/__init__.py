"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    ChangePasswordSchema,
    ForgotPasswordSchema,
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    ResetPasswordSchema,
    TokenPairSchema,
)
from .user import UserSummarySchema

__all__ = [
    "ChangePasswordSchema",
    "ForgotPasswordSchema",
    "LoginSchema",
    "RefreshTokenSchema",
    "RegisterSchema",
    "ResetPasswordSchema",
    "TokenPairSchema",
    "UserSummarySchema",
]
