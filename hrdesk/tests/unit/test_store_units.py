"""
tests/unit/test_store_units.py — CredentialStore / SessionStore against SQLite.

The stores only need a SQLAlchemy Session, so these tests build one on a
private in-memory engine. No Flask app context is involved.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from hrdesk.app.errors import AppError, ErrorCode, StoreUnavailable
from hrdesk.app.extensions import db
from hrdesk.app.models.employee import Employee
from hrdesk.app.models.session import UserSession
from hrdesk.app.stores.common import store_call
from hrdesk.app.stores.credential_store import CredentialStore
from hrdesk.app.stores.session_store import SessionStore

NOW = datetime.now(timezone.utc)
LATER = NOW + timedelta(days=7)


@pytest.fixture
def session():
    engine = create_engine("sqlite://")
    db.metadata.create_all(engine)
    with Session(engine) as s:
        yield s
    engine.dispose()


@pytest.fixture
def credentials(session):
    return CredentialStore(session)


@pytest.fixture
def sessions(session):
    return SessionStore(session)


@pytest.fixture
def user_id(credentials):
    return credentials.insert("alice@example.com", "$2b$04$fakehash", "User")


def _live(session, external_id):
    return session.execute(
        select(UserSession).where(
            UserSession.user_external_id == external_id,
            UserSession.revoked.is_(False),
        )
    ).scalars().all()


# ═══════════════════════════════════════════════════════════════════════════
# store_call
# ═══════════════════════════════════════════════════════════════════════════

def test_store_call_translates_connectivity_errors():
    @store_call
    def broken():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    with pytest.raises(StoreUnavailable) as exc_info:
        broken()

    err = exc_info.value
    assert err.code == ErrorCode.STORE_UNAVAILABLE
    assert err.http_status == 500
    assert "connection refused" not in err.message


def test_store_call_passes_app_errors_through():
    @store_call
    def conflict():
        raise AppError(ErrorCode.DUPLICATE_EMAIL, "dup", 409)

    with pytest.raises(AppError) as exc_info:
        conflict()
    assert exc_info.value.code == ErrorCode.DUPLICATE_EMAIL


# ═══════════════════════════════════════════════════════════════════════════
# CredentialStore
# ═══════════════════════════════════════════════════════════════════════════

class TestCredentialStore:

    def test_insert_returns_uuid_external_id(self, credentials, user_id):
        assert uuid.UUID(user_id).version == 4
        user = credentials.find_by_email("alice@example.com")
        assert user.external_id == user_id
        assert user.role == "User"

    def test_insert_duplicate_email_raises_conflict(self, credentials, user_id):
        with pytest.raises(AppError) as exc_info:
            credentials.insert("alice@example.com", "$2b$04$other", "Admin")
        assert exc_info.value.code == ErrorCode.DUPLICATE_EMAIL
        assert exc_info.value.http_status == 409

    def test_employee_exists(self, session, credentials):
        session.add(Employee(unique_id="E-1", first_name="A", last_name="B", email="a@x.com"))
        session.flush()
        assert credentials.employee_exists("a@x.com") is True
        assert credentials.employee_exists("b@x.com") is False

    def test_set_reset_token_unknown_email(self, credentials):
        assert credentials.set_reset_token("ghost@example.com", "t", LATER) is False

    def test_reset_token_lookup_respects_expiry(self, credentials, user_id):
        assert credentials.set_reset_token("alice@example.com", "tok", NOW + timedelta(minutes=15))
        assert credentials.find_by_valid_reset_token("tok", NOW).external_id == user_id
        assert credentials.find_by_valid_reset_token("tok", NOW + timedelta(minutes=16)) is None
        assert credentials.find_by_valid_reset_token("other", NOW) is None

    def test_update_password_clears_token_once(self, session, credentials, user_id):
        credentials.set_reset_token("alice@example.com", "tok", LATER)
        user = credentials.find_by_email("alice@example.com")

        assert credentials.update_password_and_clear_reset(user.id, "$2b$04$new", reset_token="tok")
        assert not credentials.update_password_and_clear_reset(user.id, "$2b$04$newer", reset_token="tok")

        session.expire_all()
        user = credentials.find_by_email("alice@example.com")
        assert user.password_hash == "$2b$04$new"
        assert user.reset_token is None
        assert user.reset_token_expiry is None


# ═══════════════════════════════════════════════════════════════════════════
# SessionStore
# ═══════════════════════════════════════════════════════════════════════════

class TestSessionStore:

    def test_replace_for_device_keeps_one_row_per_device(self, session, sessions, user_id):
        sessions.replace_for_device(user_id, "Phone/1.0", "fp-1", "10.0.0.1", LATER)
        sessions.replace_for_device(user_id, "Phone/1.0", "fp-2", "10.0.0.2", LATER)
        sessions.replace_for_device(user_id, "Laptop/1.0", "fp-3", "10.0.0.3", LATER)

        rows = _live(session, user_id)
        assert sorted(r.refresh_fingerprint for r in rows) == ["fp-2", "fp-3"]

    def test_missing_user_agent_is_its_own_device(self, session, sessions, user_id):
        sessions.replace_for_device(user_id, None, "fp-1", None, LATER)
        sessions.replace_for_device(user_id, None, "fp-2", None, LATER)
        sessions.replace_for_device(user_id, "Phone/1.0", "fp-3", None, LATER)

        rows = _live(session, user_id)
        assert sorted(r.refresh_fingerprint for r in rows) == ["fp-2", "fp-3"]

    def test_list_active_skips_revoked_and_expired(self, sessions, user_id):
        live = sessions.insert(user_id, "A", "fp-live", None, LATER)
        sessions.insert(user_id, "B", "fp-expired", None, NOW - timedelta(seconds=1))
        revoked = sessions.insert(user_id, "C", "fp-revoked", None, LATER)
        sessions.revoke_by_id(revoked.id)

        active = sessions.list_active(user_id, NOW)
        assert [s.id for s in active] == [live.id]

    def test_consume_succeeds_exactly_once(self, sessions, user_id):
        record = sessions.insert(user_id, "A", "fp", None, LATER)
        assert sessions.consume(record.id) is True
        assert sessions.consume(record.id) is False

    def test_consume_ignores_revoked_rows(self, sessions, user_id):
        record = sessions.insert(user_id, "A", "fp", None, LATER)
        sessions.revoke_by_id(record.id)
        assert sessions.consume(record.id) is False

    def test_revoke_by_id_is_single_shot(self, sessions, user_id):
        record = sessions.insert(user_id, "A", "fp", None, LATER)
        assert sessions.revoke_by_id(record.id) is True
        assert sessions.revoke_by_id(record.id) is False

    def test_revoke_all_for_user_is_idempotent(self, session, sessions, credentials, user_id):
        other = credentials.insert("bob@example.com", "$2b$04$fakehash", "User")
        sessions.insert(user_id, "A", "fp-a", None, LATER)
        sessions.insert(user_id, "B", "fp-b", None, LATER)
        sessions.insert(other, "A", "fp-other", None, LATER)

        assert sessions.revoke_all_for_user(user_id) == 2
        assert sessions.revoke_all_for_user(user_id) == 0
        assert _live(session, user_id) == []
        assert len(_live(session, other)) == 1

    def test_delete_by_id(self, session, sessions, user_id):
        record = sessions.insert(user_id, "A", "fp", None, LATER)
        record_id = record.id
        sessions.delete_by_id(record_id)
        session.expire_all()
        remaining = session.execute(
            select(UserSession.id).where(UserSession.id == record_id)
        ).first()
        assert remaining is None

    def test_commit_persists(self, session, sessions, user_id):
        sessions.insert(user_id, "A", "fp", None, LATER)
        sessions.commit()
        session.rollback()
        assert len(_live(session, user_id)) == 1


# ═══════════════════════════════════════════════════════════════════════════
# Per-user write serialisation
# ═══════════════════════════════════════════════════════════════════════════

def _executed_sql(mock_session) -> list[str]:
    return [
        str(c.args[0].compile(dialect=postgresql.dialect()))
        for c in mock_session.execute.call_args_list
    ]


class TestSessionWriteLocking:

    def test_replace_for_device_locks_user_before_delete(self):
        handle = MagicMock()
        SessionStore(handle).replace_for_device("ext-1", "Phone/1.0", "fp", None, LATER)

        statements = _executed_sql(handle)
        assert statements[0].startswith("SELECT users.id")
        assert statements[0].endswith("FOR UPDATE")
        assert statements[1].startswith("DELETE FROM sessions")

    def test_insert_locks_user_first(self):
        handle = MagicMock()
        SessionStore(handle).insert("ext-1", "Phone/1.0", "fp", None, LATER)

        statements = _executed_sql(handle)
        assert len(statements) == 1
        assert "FROM users" in statements[0]
        assert statements[0].endswith("FOR UPDATE")
        handle.flush.assert_called_once()

    def test_consume_locks_owning_user_before_delete(self):
        handle = MagicMock()
        handle.execute.return_value.rowcount = 1
        assert SessionStore(handle).consume(42) is True

        statements = _executed_sql(handle)
        assert statements[0].endswith("FOR UPDATE OF users")
        assert statements[1].startswith("DELETE FROM sessions")

    def test_lock_is_harmless_on_sqlite(self, session, sessions, user_id):
        sessions.replace_for_device(user_id, "Phone/1.0", "fp-1", None, LATER)
        record = sessions.insert(user_id, "Laptop/1.0", "fp-2", None, LATER)
        assert sessions.consume(record.id) is True
        assert [r.refresh_fingerprint for r in _live(session, user_id)] == ["fp-1"]
