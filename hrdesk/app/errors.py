"""
errors.py — AppError base class, typed auth errors, and the error code registry.

Every error returned by the hrdesk API must use a code defined here.
Do not raise strings or generic exceptions from service, store or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose and must stay generic: never
    include tokens, hashes, store error codes, or which comparison failed.
  - Never conflate 401 (unauthenticated) with 400 (bad input).
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Typed errors ───────────────────────────────────────────────────────────
#
# The auth service raises these; the global handler in app/__init__.py maps
# each to its status. The status is fixed per class so callers only pick a
# code and a message.
# ──────────────────────────────────────────────────────────────────────────

class ValidationError(AppError):
    """Malformed or missing input, unknown role, failed roster check (400)."""

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 400, field=field)


class AuthenticationError(AppError):
    """Bad credentials or an invalid, expired or reused token (401)."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 401)


class ConflictError(AppError):
    """Duplicate email (409)."""

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 409, field=field)


class StoreUnavailable(AppError):
    """The database could not be reached (500). Details stay in the log."""

    def __init__(self, message: str = "The service is temporarily unavailable.") -> None:
        super().__init__(ErrorCode.STORE_UNAVAILABLE, message, 500)


# ── Error Code Registry ────────────────────────────────────────────────────
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_ROLE               = "INVALID_ROLE"
    EMPLOYEE_NOT_FOUND         = "EMPLOYEE_NOT_FOUND"
    PASSWORD_TOO_LONG          = "PASSWORD_TOO_LONG"
    RESET_TOKEN_INVALID        = "RESET_TOKEN_INVALID"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"

    # ── Auth Errors (401) ──────────────────────────────────────────────────
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"
    TOKEN_MISSING              = "TOKEN_MISSING"
    TOKEN_INVALID              = "TOKEN_INVALID"
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"
    REFRESH_TOKEN_REUSED       = "REFRESH_TOKEN_REUSED"

    # ── System Errors (500) ────────────────────────────────────────────────
    STORE_UNAVAILABLE          = "STORE_UNAVAILABLE"
    INTERNAL_ERROR             = "INTERNAL_ERROR"
