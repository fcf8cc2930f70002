"""
models/user.py — User table definition.

Columns and constraints mirror the `users` table of the persisted layout.
No business logic. No imports from services, stores or routes.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrdesk.app.extensions import db


class Role:
    USER       = "User"
    ADMIN      = "Admin"
    SUPERADMIN = "Superadmin"


ROLES: tuple[str, ...] = (Role.USER, Role.ADMIN, Role.SUPERADMIN)


class User(db.Model):
    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "role IN ('User', 'Admin', 'Superadmin')",
            name="ck_users_role",
        ),
        # A reset token is meaningless without its expiry and vice versa.
        CheckConstraint(
            "(reset_token IS NULL) = (reset_token_expiry IS NULL)",
            name="ck_users_reset_token_pair",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # Opaque, stable identifier exposed to clients and carried in the JWT
    # `sub` claim. The integer id never leaves the server.
    external_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        unique=True,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Role.USER,
    )

    # bcrypt hash. Never serialised into any response.
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    reset_token: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )

    reset_token_expiry: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    sessions: Mapped[list["UserSession"]] = relationship(  # noqa: F821
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} external_id={self.external_id!r} role={self.role!r}>"
