"""
middleware/auth_middleware.py — Bearer access-token decorator.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Verifies the token as an ACCESS token (signature, expiry, kind)
  3. Attaches the verified TokenClaims to flask.g.current_user
  4. Raises the appropriate 401 AppError if any step fails

This middleware authenticates only. It does not interpret the role claim.
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import current_app, g, request

from hrdesk.app.errors import AuthenticationError, ErrorCode
from hrdesk.app.services.token_service import InvalidToken, TokenKind, TokenService


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces bearer access-token authentication.

    Usage:
        @auth_bp.route("/profile")
        @require_auth
        def profile():
            claims = g.current_user  # TokenClaims
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _authenticate_request() -> None:
    """
    Performs the bearer authentication sequence and sets flask.g.current_user.

    Raises AppError on any failure; the global error handler renders it.
    """
    auth_header = request.headers.get("Authorization", "")

    if not auth_header:
        raise AuthenticationError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
        )

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
        )

    tokens = TokenService.from_config(current_app.config)
    try:
        claims = tokens.verify(parts[1], TokenKind.ACCESS)
    except InvalidToken:
        # Expired and tampered tokens are reported the same way.
        raise AuthenticationError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has expired.",
        ) from None

    g.current_user = claims
