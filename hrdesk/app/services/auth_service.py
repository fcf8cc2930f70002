"""
services/auth_service.py — Authentication and session lifecycle.

Responsibilities:
  - Registration gated by the employee roster
  - Credential verification and token-pair issuance
  - Per-device refresh sessions with rotation and reuse detection
  - Single-device logout
  - Time-boxed password reset

Layer rules:
  - No Flask imports. No flask.request, flask.g, or HTTP status codes.
  - Collaborators (stores, token service, hasher) are injected; the route
    builds them around the request's SQLAlchemy session.
  - Flush only, via the stores. The route commits. The single exception is
    reuse detection, which commits the mass revocation before raising.

Refresh state machine:
  verify ─fail─▶ REFRESH_TOKEN_INVALID
    │
  lookup live sessions for `sub`
    │
  match (bcrypt scan, first hit) ─none─▶ revoke all + commit ─▶ REFRESH_TOKEN_REUSED
    │
  consume(session) ─0 rows─▶ revoke all + commit ─▶ REFRESH_TOKEN_REUSED
    │
  mint pair, insert replacement session ─▶ new pair

Raw tokens, password hashes and fingerprints are never logged.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, NoReturn

from hrdesk.app.errors import (
    AuthenticationError,
    ConflictError,
    ErrorCode,
    ValidationError,
)
from hrdesk.app.models.session import UserSession
from hrdesk.app.models.user import ROLES
from hrdesk.app.services.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from hrdesk.app.services.token_service import (
    InvalidToken,
    TokenClaims,
    TokenKind,
    TokenService,
)
from hrdesk.app.stores.credential_store import CredentialStore
from hrdesk.app.stores.session_store import SessionStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DeviceMetadata:
    user_agent: str | None = None
    origin: str | None = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def to_dict(self) -> dict:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
        }


# ── Private helpers ────────────────────────────────────────────────────────

def _require(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(
            ErrorCode.MISSING_FIELD,
            f"The '{field}' field is required.",
            field=field,
        )
    return value


def _check_password_length(password: str, field: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            ErrorCode.PASSWORD_TOO_LONG,
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes.",
            field=field,
        )


def _invalid_credentials() -> AuthenticationError:
    # Same error for unknown email, missing hash and wrong password.
    return AuthenticationError(
        ErrorCode.INVALID_CREDENTIALS,
        "The email or password is incorrect.",
    )


# ── Service ────────────────────────────────────────────────────────────────

class AuthService:

    def __init__(
            self,
            credentials: CredentialStore,
            sessions: SessionStore,
            tokens: TokenService,
            hasher: PasswordHasher,
            reset_ttl: timedelta = timedelta(minutes=15),
            clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._credentials = credentials
        self._sessions = sessions
        self._tokens = tokens
        self._hasher = hasher
        self._reset_ttl = reset_ttl
        self._now = clock

    # ── Registration & login ───────────────────────────────────────────────

    def register(self, email: str, password: str, role: str) -> str:
        """
        Creates the account for an existing employee and returns its external id.

        Raises:
          ValidationError(MISSING_FIELD | INVALID_ROLE | PASSWORD_TOO_LONG) — bad input
          ValidationError(EMPLOYEE_NOT_FOUND) — no roster row for this email
          ConflictError(DUPLICATE_EMAIL)       — account already exists
        """
        _require(email, "email")
        _require(password, "password")
        _require(role, "role")
        if role not in ROLES:
            raise ValidationError(
                ErrorCode.INVALID_ROLE,
                f"Role must be one of: {', '.join(ROLES)}.",
                field="role",
            )
        _check_password_length(password, "password")

        # Accounts follow employment: no roster row, no account.
        if not self._credentials.employee_exists(email):
            raise ValidationError(
                ErrorCode.EMPLOYEE_NOT_FOUND,
                "No employee record exists for this email.",
                field="email",
            )

        if self._credentials.find_by_email(email) is not None:
            raise ConflictError(
                ErrorCode.DUPLICATE_EMAIL,
                "An account with this email already exists.",
                field="email",
            )

        password_hash = self._hasher.hash_password(password)
        external_id = self._credentials.insert(email, password_hash, role)

        logger.info("Registered user %s with role %s", external_id, role)
        return external_id

    def login(self, email: str, password: str, device: DeviceMetadata) -> TokenPair:
        """
        Verifies credentials and opens (or replaces) the session for this device.

        Raises:
          AuthenticationError(INVALID_CREDENTIALS) — unknown email, no password
            set, or wrong password. The cases are indistinguishable.
        """
        user = self._credentials.find_by_email(email) if email else None
        stored_hash = user.password_hash if user is not None else None

        # Always pay for one bcrypt check, whether or not the account exists.
        if not self._hasher.verify_password(password or "", stored_hash) or user is None:
            raise _invalid_credentials()

        claims = TokenClaims(sub=user.external_id, email=user.email, role=user.role)
        pair = self._issue_pair(claims)

        self._sessions.replace_for_device(
            user_external_id=user.external_id,
            user_agent=device.user_agent,
            fingerprint=self._hasher.fingerprint(pair.refresh_token),
            origin=device.origin,
            expires_at=self._now() + self._tokens.refresh_ttl,
        )

        logger.info("User %s logged in", user.external_id)
        return pair

    # ── Refresh rotation ───────────────────────────────────────────────────

    def refresh(self, presented_token: str) -> TokenPair:
        """
        Exchanges a refresh token for a new pair and retires the old session.

        A token that verifies but matches no live session was either rotated
        away already or never belonged to a live session. Every session of
        the user is revoked before the error is raised.

        Raises:
          AuthenticationError(REFRESH_TOKEN_INVALID) — signature/expiry failure
          AuthenticationError(REFRESH_TOKEN_REUSED)  — reuse detected
        """
        try:
            claims = self._tokens.verify(presented_token, TokenKind.REFRESH)
        except InvalidToken:
            raise AuthenticationError(
                ErrorCode.REFRESH_TOKEN_INVALID,
                "Invalid refresh token.",
            ) from None

        matched = self._find_session(claims.sub, presented_token)
        if matched is None:
            self._handle_reuse(claims.sub)

        user_agent, origin = matched.user_agent, matched.origin

        # Only one concurrent rotation of this row can win the DELETE.
        if not self._sessions.consume(matched.id):
            self._handle_reuse(claims.sub)

        pair = self._issue_pair(claims)
        self._sessions.insert(
            user_external_id=claims.sub,
            user_agent=user_agent,
            fingerprint=self._hasher.fingerprint(pair.refresh_token),
            origin=origin,
            expires_at=self._now() + self._tokens.refresh_ttl,
        )

        logger.info("Rotated refresh session for user %s", claims.sub)
        return pair

    def logout(self, presented_token: str) -> None:
        """
        Revokes the session guarded by `presented_token`. Sessions on the
        user's other devices are untouched.

        Raises:
          AuthenticationError(REFRESH_TOKEN_INVALID) — invalid token or no
            live session matches it.
        """
        invalid = AuthenticationError(ErrorCode.REFRESH_TOKEN_INVALID, "Invalid token.")
        try:
            claims = self._tokens.verify(presented_token, TokenKind.REFRESH)
        except InvalidToken:
            raise invalid from None

        matched = self._find_session(claims.sub, presented_token)
        if matched is None or not self._sessions.revoke_by_id(matched.id):
            raise invalid

        logger.info("User %s logged out one device", claims.sub)

    # ── Password reset ─────────────────────────────────────────────────────

    def request_reset(self, email: str) -> str:
        """
        Issues a 15-minute reset token for `email` and returns it.

        The response is identical whether or not the account exists; for an
        unknown email the token is simply never stored.
        """
        _require(email, "email")

        token = secrets.token_hex(32)
        expiry = self._now() + self._reset_ttl
        stored = self._credentials.set_reset_token(email, token, expiry)

        if stored:
            logger.info("Password reset token issued")
        else:
            logger.info("Password reset requested for an unknown account")
        return token

    def reset_password(self, token: str, new_password: str) -> None:
        """
        Redeems a reset token. The hash update and the token clear are one
        UPDATE, so a token is redeemable at most once.

        Raises:
          ValidationError(RESET_TOKEN_INVALID) — unknown, expired or already used
        """
        _require(token, "token")
        _require(new_password, "newPassword")
        _check_password_length(new_password, "newPassword")

        invalid = ValidationError(
            ErrorCode.RESET_TOKEN_INVALID,
            "Invalid or expired token.",
            field="token",
        )

        user = self._credentials.find_by_valid_reset_token(token, self._now())
        if user is None:
            raise invalid

        new_hash = self._hasher.hash_password(new_password)
        if not self._credentials.update_password_and_clear_reset(user.id, new_hash, reset_token=token):
            raise invalid

        logger.info("Password reset completed for user %s", user.external_id)

    # ── Profile ────────────────────────────────────────────────────────────

    @staticmethod
    def get_profile(claims: TokenClaims) -> dict:
        """Serialises verified access-token claims. No store access."""
        return {
            "userId": claims.sub,
            "email": claims.email,
            "role": claims.role,
        }

    # ── Internals ──────────────────────────────────────────────────────────

    def _issue_pair(self, claims: TokenClaims) -> TokenPair:
        return TokenPair(
            access_token=self._tokens.issue_access_token(claims),
            refresh_token=self._tokens.issue_refresh_token(claims),
        )

    def _find_session(self, user_external_id: str, raw_token: str) -> UserSession | None:
        active = self._sessions.list_active(user_external_id, self._now())
        index = self._hasher.match_fingerprint(
            raw_token,
            [s.refresh_fingerprint for s in active],
        )
        return None if index is None else active[index]

    def _handle_reuse(self, user_external_id: str) -> NoReturn:
        revoked = self._sessions.revoke_all_for_user(user_external_id)
        # Must outlive the 401 below: the route never commits on error.
        self._sessions.commit()
        logger.warning(
            "Refresh token reuse detected for user %s; revoked %d session(s)",
            user_external_id,
            revoked,
        )
        raise AuthenticationError(
            ErrorCode.REFRESH_TOKEN_REUSED,
            "Refresh token reuse detected.",
        )
