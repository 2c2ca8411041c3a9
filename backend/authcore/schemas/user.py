"""User resource schemas."""

from __future__ import annotations

from marshmallow import Schema, fields


class UserSummarySchema(Schema):
    """Public representation of a user; credentials never appear here."""

    id = fields.Integer(required=True)
    email = fields.Email(required=True)
    username = fields.String(required=True)
    full_name = fields.String(allow_none=True)
    avatar_url = fields.String(required=True)
    is_email_verified = fields.Boolean(required=True)
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)
