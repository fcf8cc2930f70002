"""
stores/session_store.py — Persistence for per-device refresh sessions.

Every mutation here runs inside the caller's transaction. The route commits
once at the end of the request, so login's replace-for-device and refresh's
consume-then-insert each land atomically or not at all.

The one exception is reuse detection: the auth service calls commit() after
revoke_all_for_user() so the revocation survives the 401 that follows.

Every path that creates or consumes a session first locks the owning users
row (SELECT ... FOR UPDATE) before touching any sessions row. Under READ
COMMITTED a DELETE cannot see a row inserted by a transaction that
committed after the statement began, so without the lock two logins from
one device could each leave a live row.
SQLite serialises writers and SQLAlchemy omits FOR UPDATE there.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from hrdesk.app.models.session import UserSession
from hrdesk.app.models.user import User
from hrdesk.app.stores.common import store_call


class SessionStore:

    def __init__(self, session: Session) -> None:
        self._session = session

    @store_call
    def replace_for_device(
            self,
            user_external_id: str,
            user_agent: str | None,
            fingerprint: str,
            origin: str | None,
            expires_at: datetime,
    ) -> UserSession:
        """
        Removes the live session for (user, device) and inserts the new one.

        Both statements are flushed in the same transaction, so no reader
        ever sees zero or two live sessions for the device.
        """
        self._lock_user(user_external_id)
        device_clause = (
            UserSession.user_agent.is_(None)
            if user_agent is None
            else UserSession.user_agent == user_agent
        )
        self._session.execute(
            delete(UserSession).where(
                UserSession.user_external_id == user_external_id,
                UserSession.revoked.is_(False),
                device_clause,
            )
        )
        return self._insert(user_external_id, user_agent, fingerprint, origin, expires_at)

    @store_call
    def insert(
            self,
            user_external_id: str,
            user_agent: str | None,
            fingerprint: str,
            origin: str | None,
            expires_at: datetime,
    ) -> UserSession:
        self._lock_user(user_external_id)
        return self._insert(user_external_id, user_agent, fingerprint, origin, expires_at)

    def _lock_user(self, user_external_id: str) -> None:
        # Held until the request commits; serialises session writes per user.
        self._session.execute(
            select(User.id)
            .where(User.external_id == user_external_id)
            .with_for_update()
        )

    def _lock_user_for_session(self, session_id: int) -> None:
        self._session.execute(
            select(User.id)
            .join(UserSession, UserSession.user_external_id == User.external_id)
            .where(UserSession.id == session_id)
            .with_for_update(of=User)
        )

    def _insert(self, user_external_id, user_agent, fingerprint, origin, expires_at) -> UserSession:
        record = UserSession(
            user_external_id=user_external_id,
            refresh_fingerprint=fingerprint,
            user_agent=user_agent,
            origin=origin,
            expires_at=expires_at,
            revoked=False,
        )
        self._session.add(record)
        self._session.flush()
        return record

    @store_call
    def list_active(self, user_external_id: str, now: datetime) -> list[UserSession]:
        """Non-revoked, unexpired sessions for one user (one per device)."""
        return list(
            self._session.execute(
                select(UserSession)
                .where(
                    UserSession.user_external_id == user_external_id,
                    UserSession.revoked.is_(False),
                    UserSession.expires_at > now,
                )
                .order_by(UserSession.id)
            ).scalars().all()
        )

    @store_call
    def consume(self, session_id: int) -> bool:
        """
        Conditionally deletes a live session. Returns True only for the
        caller whose DELETE removed the row.

        Two requests rotating the same session both reach this statement;
        the database serialises them on the row and the loser sees rowcount 0.
        """
        self._lock_user_for_session(session_id)
        result = self._session.execute(
            delete(UserSession).where(
                UserSession.id == session_id,
                UserSession.revoked.is_(False),
            )
        )
        return result.rowcount == 1

    @store_call
    def delete_by_id(self, session_id: int) -> None:
        self._session.execute(
            delete(UserSession).where(UserSession.id == session_id)
        )

    @store_call
    def revoke_all_for_user(self, user_external_id: str) -> int:
        """Flags every live session of the user revoked. Idempotent."""
        result = self._session.execute(
            update(UserSession)
            .where(
                UserSession.user_external_id == user_external_id,
                UserSession.revoked.is_(False),
            )
            .values(revoked=True)
        )
        return result.rowcount

    @store_call
    def revoke_by_id(self, session_id: int) -> bool:
        result = self._session.execute(
            update(UserSession)
            .where(
                UserSession.id == session_id,
                UserSession.revoked.is_(False),
            )
            .values(revoked=True)
        )
        return result.rowcount == 1

    @store_call
    def commit(self) -> None:
        self._session.commit()
