"""
models/session.py — UserSession table definition.

One row is one outstanding refresh capability for one (user, device) pair.
Named UserSession so it never shadows sqlalchemy.orm.Session.

FK policy: user_external_id ON DELETE CASCADE — a session has no existence
without its owning user.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, false, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrdesk.app.extensions import db


class UserSession(db.Model):
    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Sessions are looked up by the owner's external id, never the reverse.
    user_external_id: Mapped[str] = mapped_column(
        ForeignKey("users.external_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # bcrypt(sha256_hex(raw_refresh_token)). Each row carries its own salt,
    # so lookup is a scan over one user's sessions, not an equality query.
    refresh_fingerprint: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    user_agent: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Client address the session was opened from (IPv6 max 45 chars).
    origin: Mapped[str | None] = mapped_column(
        String(45),
        nullable=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Terminal once true. Set on logout and on reuse detection.
    revoked: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="sessions",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<UserSession id={self.id} "
            f"user_external_id={self.user_external_id!r} "
            f"revoked={self.revoked}>"
        )
