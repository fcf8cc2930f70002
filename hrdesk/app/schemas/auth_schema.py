"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field presence, types, formats, the role enum, password length.
  - services/auth_service.py: roster, uniqueness and token checks (require a
    DB lookup — not a schema concern).

IMPORTANT: All schemas inherit from marshmallow.Schema directly so unit tests
can load them without a Flask app context.

Wire names are camelCase (refreshToken, newPassword); `data_key` maps them to
the snake_case keys the routes read.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from hrdesk.app.models.user import ROLES
from hrdesk.app.services.passwords import MAX_PASSWORD_BYTES


def _password_field(**kwargs) -> fields.Str:
    # Byte length is re-checked in the service; this rejects the obvious cases early.
    return fields.Str(
        required=True,
        load_only=True,
        validate=validate.Length(
            min=1,
            max=MAX_PASSWORD_BYTES,
            error=f"Password must be between 1 and {MAX_PASSWORD_BYTES} characters.",
        ),
        **kwargs,
    )


class RegisterSchema(Schema):
    """
    POST /auth/register

    email    : valid email format, max 255 chars
    password : 1–72 chars (bcrypt input limit)
    role     : one of User / Admin / Superadmin
    """

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )
    password = _password_field()
    role = fields.Str(
        required=True,
        validate=validate.OneOf(ROLES, error="Role must be one of: {choices}."),
    )


class LoginSchema(Schema):
    """
    POST /auth/login

    Credential correctness is checked in auth_service.py (INVALID_CREDENTIALS, 401).
    Device metadata comes from request headers, not the body.
    """

    email = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)


class RefreshTokenSchema(Schema):
    """POST /auth/refresh and POST /auth/logout."""

    refresh_token = fields.Str(required=True, data_key="refreshToken")


class RequestResetSchema(Schema):
    """POST /auth/request-reset"""

    email = fields.Email(required=True)


class ResetPasswordSchema(Schema):
    """POST /auth/reset-password"""

    token = fields.Str(required=True, validate=validate.Length(min=1))
    new_password = _password_field(data_key="newPassword")
