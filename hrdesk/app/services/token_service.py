"""
services/token_service.py — Signing and verification of access / refresh JWTs.

Token design:
  - Access token:  HS256, 15 min TTL, signed with JWT_ACCESS_SECRET_KEY.
  - Refresh token: HS256, 7 day TTL, signed with JWT_REFRESH_SECRET_KEY.
  - Both carry the same identity claims {sub (external id), email, role}
    plus `type`, `iat`, `exp` and a random `jti`.

Key separation means an access token never verifies as a refresh token and
vice versa; the `type` claim is checked as well so a misconfigured deployment
with equal keys still cannot mix them up.

Stateless: no I/O, safe to share across threads.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping

import jwt


class TokenKind:
    ACCESS  = "access"
    REFRESH = "refresh"


class InvalidToken(Exception):
    """Signature, expiry, shape or kind check failed. Deliberately opaque."""


@dataclass(frozen=True)
class TokenClaims:
    sub: str
    email: str
    role: str

    def to_dict(self) -> dict:
        return {"sub": self.sub, "email": self.email, "role": self.role}


class TokenService:

    def __init__(
            self,
            access_secret: str,
            refresh_secret: str,
            access_ttl: timedelta = timedelta(minutes=15),
            refresh_ttl: timedelta = timedelta(days=7),
            algorithm: str = "HS256",
    ) -> None:
        self._keys = {
            TokenKind.ACCESS: access_secret,
            TokenKind.REFRESH: refresh_secret,
        }
        self._ttls = {
            TokenKind.ACCESS: access_ttl,
            TokenKind.REFRESH: refresh_ttl,
        }
        self._algorithm = algorithm

    @classmethod
    def from_config(cls, config: Mapping) -> "TokenService":
        return cls(
            access_secret=config["JWT_ACCESS_SECRET_KEY"],
            refresh_secret=config["JWT_REFRESH_SECRET_KEY"],
            access_ttl=config["JWT_ACCESS_TOKEN_EXPIRES"],
            refresh_ttl=config["JWT_REFRESH_TOKEN_EXPIRES"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
        )

    @property
    def refresh_ttl(self) -> timedelta:
        return self._ttls[TokenKind.REFRESH]

    def issue_access_token(self, claims: TokenClaims) -> str:
        return self._encode(claims, TokenKind.ACCESS)

    def issue_refresh_token(self, claims: TokenClaims) -> str:
        return self._encode(claims, TokenKind.REFRESH)

    def verify(self, token: str, kind: str) -> TokenClaims:
        """
        Returns the identity claims of a valid, unexpired token of `kind`.

        Raises InvalidToken for every failure; callers do not learn whether
        the token was expired, tampered with, or of the wrong kind.
        """
        if kind not in self._keys:
            raise ValueError(f"Unknown token kind: {kind!r}")
        try:
            payload = jwt.decode(
                token,
                self._keys[kind],
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidToken() from exc

        if payload.get("type") != kind:
            raise InvalidToken()

        email = payload.get("email")
        role = payload.get("role")
        if not isinstance(email, str) or not isinstance(role, str):
            raise InvalidToken()

        return TokenClaims(sub=payload["sub"], email=email, role=role)

    def _encode(self, claims: TokenClaims, kind: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims.to_dict(),
            "type": kind,
            "iat": now,
            "exp": now + self._ttls[kind],
            # Guarantees each issued token is unique even if generated in the same second.
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self._keys[kind], algorithm=self._algorithm)
