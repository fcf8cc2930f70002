"""
stores/credential_store.py — Persistence for user credentials.

Pattern: Repository over the request's SQLAlchemy session. The auth service
never touches SQL directly.

Layer rules:
  - No Flask imports.
  - Flush only; commits are the route's responsibility.
  - Returned User rows must never be serialised with their password_hash.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrdesk.app.errors import ConflictError, ErrorCode
from hrdesk.app.models.employee import Employee
from hrdesk.app.models.user import User
from hrdesk.app.stores.common import store_call


class CredentialStore:

    def __init__(self, session: Session) -> None:
        self._session = session

    @store_call
    def find_by_email(self, email: str) -> User | None:
        return self._session.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()

    @store_call
    def employee_exists(self, email: str) -> bool:
        """Read-only check against the employee roster."""
        row = self._session.execute(
            select(Employee.id).where(Employee.email == email).limit(1)
        ).first()
        return row is not None

    @store_call
    def insert(self, email: str, password_hash: str, role: str) -> str:
        """
        Creates the user row and returns its external id.

        Raises ConflictError if the unique email constraint fires, which
        happens when two registrations for the same email race past the
        service's existence check.
        """
        user = User(
            external_id=str(uuid.uuid4()),
            email=email,
            role=role,
            password_hash=password_hash,
        )
        self._session.add(user)
        try:
            self._session.flush()
        except IntegrityError as exc:
            self._session.rollback()
            raise ConflictError(
                ErrorCode.DUPLICATE_EMAIL,
                "An account with this email already exists.",
                field="email",
            ) from exc
        return user.external_id

    @store_call
    def set_reset_token(self, email: str, token: str, expiry: datetime) -> bool:
        """Stores the reset token on the user row. Returns False for unknown emails."""
        result = self._session.execute(
            update(User)
            .where(User.email == email)
            .values(reset_token=token, reset_token_expiry=expiry)
        )
        return result.rowcount > 0

    @store_call
    def find_by_valid_reset_token(self, token: str, now: datetime) -> User | None:
        """Returns the user only if the token's expiry is strictly after `now`."""
        return self._session.execute(
            select(User).where(
                User.reset_token == token,
                User.reset_token_expiry > now,
            )
        ).scalar_one_or_none()

    @store_call
    def update_password_and_clear_reset(
            self,
            user_id: int,
            new_hash: str,
            reset_token: str | None = None,
    ) -> bool:
        """
        Sets the new hash and clears the reset token and expiry in one UPDATE.

        When `reset_token` is given the row must still carry it, so two
        concurrent redemptions of the same token cannot both succeed.
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                password_hash=new_hash,
                reset_token=None,
                reset_token_expiry=None,
            )
        )
        if reset_token is not None:
            stmt = stmt.where(User.reset_token == reset_token)
        result = self._session.execute(stmt)
        return result.rowcount > 0
