"""Initial schema — employee roster, users, sessions.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. employees (the roster owned by the HR CRUD modules; created here so a
     fresh database is usable on its own)
  2. users
  3. sessions (FK to users.external_id)
  4. Indexes

ON DELETE policies:
  sessions.user_external_id → CASCADE (a session is owned by its user)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:

    # ── Step 1: employees ──────────────────────────────────────────────────

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("unique_id", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_employees"),
        sa.UniqueConstraint("unique_id", name="uq_employees_unique_id"),
    )

    # ── Step 2: users ──────────────────────────────────────────────────────
    # reset_token and reset_token_expiry are both NULL or both set.

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("reset_token", sa.String(255), nullable=True),
        sa.Column("reset_token_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("external_id", name="uq_users_external_id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint(
            "role IN ('User', 'Admin', 'Superadmin')",
            name="ck_users_role",
        ),
        sa.CheckConstraint(
            "(reset_token IS NULL) = (reset_token_expiry IS NULL)",
            name="ck_users_reset_token_pair",
        ),
    )

    # ── Step 3: sessions ───────────────────────────────────────────────────
    # refresh_fingerprint holds bcrypt(sha256_hex(token)), never the token.

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_external_id",
            sa.String(36),
            sa.ForeignKey(
                "users.external_id",
                ondelete="CASCADE",
                name="fk_sessions_user",
            ),
            nullable=False,
        ),
        sa.Column("refresh_fingerprint", sa.String(255), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("origin", sa.String(45), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "revoked",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("FALSE"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_sessions"),
    )

    # ── Step 4: indexes ────────────────────────────────────────────────────

    op.create_index("ix_employees_email", "employees", ["email"])
    op.create_index("ix_users_reset_token", "users", ["reset_token"])
    op.create_index("ix_sessions_user_external_id", "sessions", ["user_external_id"])


def downgrade() -> None:
    op.drop_index("ix_sessions_user_external_id", table_name="sessions")
    op.drop_index("ix_users_reset_token", table_name="users")
    op.drop_index("ix_employees_email", table_name="employees")
    op.drop_table("sessions")
    op.drop_table("users")
    op.drop_table("employees")
