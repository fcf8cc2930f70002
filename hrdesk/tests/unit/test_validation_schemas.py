"""
tests/unit/test_validation_schemas.py — Unit tests for the auth marshmallow schemas.

What this file proves:
  - Every schema accepts valid input without raising
  - Every schema rejects invalid input with a field-keyed ValidationError
  - camelCase wire names (refreshToken, newPassword) load into snake_case keys
  - Roster, uniqueness and token checks are NOT tested here; they belong in services

Unit test constraints:
  - No database and no Flask application context.
    Schemas inherit from marshmallow.Schema directly, so they load standalone.
"""

from __future__ import annotations

import pytest
from marshmallow import ValidationError

from hrdesk.app.schemas.auth_schema import (
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    RequestResetSchema,
    ResetPasswordSchema,
)


# ═══════════════════════════════════════════════════════════════════════════
# RegisterSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestRegisterSchema:

    def _valid(self, **overrides) -> dict:
        data = {"email": "alice@example.com", "password": "Password1", "role": "User"}
        data.update(overrides)
        return data

    def test_valid_payload_loads(self):
        result = RegisterSchema().load(self._valid())
        assert result == {"email": "alice@example.com", "password": "Password1", "role": "User"}

    @pytest.mark.parametrize("role", ["User", "Admin", "Superadmin"])
    def test_every_role_accepted(self, role):
        assert RegisterSchema().load(self._valid(role=role))["role"] == role

    def test_role_is_case_sensitive(self):
        with pytest.raises(ValidationError) as exc_info:
            RegisterSchema().load(self._valid(role="admin"))
        assert "role" in exc_info.value.messages

    def test_invalid_email_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RegisterSchema().load(self._valid(email="not-an-email"))
        assert "email" in exc_info.value.messages

    def test_empty_password_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RegisterSchema().load(self._valid(password=""))
        assert "password" in exc_info.value.messages

    def test_password_over_72_chars_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RegisterSchema().load(self._valid(password="a" * 73))
        assert "password" in exc_info.value.messages

    @pytest.mark.parametrize("field", ["email", "password", "role"])
    def test_required_fields(self, field):
        data = self._valid()
        del data[field]
        with pytest.raises(ValidationError) as exc_info:
            RegisterSchema().load(data)
        assert exc_info.value.messages[field] == ["Missing data for required field."]

    def test_password_never_dumped(self):
        assert "password" not in RegisterSchema().dump(self._valid())


# ═══════════════════════════════════════════════════════════════════════════
# LoginSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestLoginSchema:

    def test_valid_payload_loads(self):
        result = LoginSchema().load({"email": "alice@example.com", "password": "x"})
        assert result["email"] == "alice@example.com"

    def test_email_format_not_checked_at_login(self):
        # Login must not reveal anything beyond INVALID_CREDENTIALS.
        assert LoginSchema().load({"email": "whatever", "password": "x"})["email"] == "whatever"

    def test_missing_password_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            LoginSchema().load({"email": "alice@example.com"})
        assert "password" in exc_info.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# Token-carrying schemas
# ═══════════════════════════════════════════════════════════════════════════

class TestRefreshTokenSchema:

    def test_wire_name_is_camel_case(self):
        assert RefreshTokenSchema().load({"refreshToken": "abc"}) == {"refresh_token": "abc"}

    def test_snake_case_key_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RefreshTokenSchema().load({"refresh_token": "abc"})
        assert "refreshToken" in exc_info.value.messages


class TestRequestResetSchema:

    def test_valid_email_loads(self):
        assert RequestResetSchema().load({"email": "a@x.com"}) == {"email": "a@x.com"}

    def test_invalid_email_rejected(self):
        with pytest.raises(ValidationError):
            RequestResetSchema().load({"email": "nope"})


class TestResetPasswordSchema:

    def test_valid_payload_loads(self):
        result = ResetPasswordSchema().load({"token": "abc", "newPassword": "NewPassword2"})
        assert result == {"token": "abc", "new_password": "NewPassword2"}

    def test_empty_token_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            ResetPasswordSchema().load({"token": "", "newPassword": "NewPassword2"})
        assert "token" in exc_info.value.messages

    def test_missing_new_password_reported_under_wire_name(self):
        with pytest.raises(ValidationError) as exc_info:
            ResetPasswordSchema().load({"token": "abc"})
        assert "newPassword" in exc_info.value.messages
