"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, pre_load, validate

PASSWORD_PATTERN = r"^(?=.*[A-Za-z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]+$"

password_rules = validate.And(
    validate.Length(min=6, max=128, error="Password must be at least 6 characters long"),
    validate.Regexp(
        PASSWORD_PATTERN,
        error="Password must contain at least one letter, one number, and one special character",
    ),
)


class _InputSchema(Schema):
    """Base for request payloads: drops unknown keys and trims strings."""

    class Meta:
        unknown = EXCLUDE

    #: Raw payload keys whose surrounding whitespace is kept (passwords).
    untrimmed: tuple[str, ...] = ()
    #: Fields treated as absent when blank, so ``load_default`` applies.
    blank_is_missing: tuple[str, ...] = ()

    @pre_load
    def _strip_strings(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        cleaned = {}
        for k, v in data.items():
            if isinstance(v, str) and k not in self.untrimmed:
                v = v.strip()
            if k in self.blank_is_missing and v in ("", None):
                continue
            cleaned[k] = v
        return cleaned


class RegisterSchema(_InputSchema):
    """Input payload for account registration."""

    untrimmed = ("password",)

    email = fields.Email(
        required=True,
        validate=validate.Length(max=254),
        error_messages={"required": "Email is required", "invalid": "Invalid email"},
    )
    username = fields.String(
        required=True,
        validate=[
            validate.Length(min=3, max=50, error="Username must be at least 3 characters long"),
            validate.Regexp(r"^[^A-Z]*$", error="Username must be lowercase"),
        ],
        error_messages={"required": "Username is required"},
    )
    password = fields.String(
        required=True,
        validate=password_rules,
        error_messages={"required": "Password is required"},
    )
    full_name = fields.String(load_default=None, validate=validate.Length(max=100))


class LoginSchema(_InputSchema):
    """Input payload for authenticating a user.

    Missing values are left to the service, which answers ``400``.
    """

    untrimmed = ("password",)
    blank_is_missing = ("email", "password")

    email = fields.Email(load_default="", error_messages={"invalid": "Email is invalid"})
    password = fields.String(load_default="")


class RefreshTokenSchema(_InputSchema):
    """Body of a refresh request; the cookie is used when absent."""

    refresh_token = fields.String(load_default=None, data_key="refreshToken")


class ChangePasswordSchema(_InputSchema):
    untrimmed = ("oldPassword", "newPassword")

    old_password = fields.String(
        required=True,
        data_key="oldPassword",
        validate=validate.Length(min=1),
        error_messages={"required": "Old password is required"},
    )
    new_password = fields.String(
        required=True,
        data_key="newPassword",
        validate=password_rules,
        error_messages={"required": "New password is required"},
    )


class ForgotPasswordSchema(_InputSchema):
    email = fields.Email(
        required=True,
        error_messages={"required": "Email is required", "invalid": "Invalid email"},
    )


class ResetPasswordSchema(_InputSchema):
    untrimmed = ("newPassword",)

    new_password = fields.String(
        required=True,
        data_key="newPassword",
        validate=password_rules,
        error_messages={"required": "New password is required"},
    )


class TokenPairSchema(Schema):
    """Response payload carrying a token pair."""

    access_token = fields.String(required=True, data_key="accessToken")
    access_token_expires_at = fields.DateTime(data_key="accessTokenExpiresAt")
    refresh_token = fields.String(required=True, data_key="refreshToken")
    refresh_token_expires_at = fields.DateTime(allow_none=True, data_key="refreshTokenExpiresAt")
