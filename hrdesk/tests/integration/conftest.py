"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing")
    (in-memory SQLite unless TEST_DATABASE_URL points at PostgreSQL).
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - seed_employee(app, email)     → inserts a roster row
  - register(client, ...)         → external id
  - login(client, ...)            → {"accessToken", "refreshToken"}
  - auth_headers(token)           → {"Authorization": "Bearer <token>"}
  - active_session_count(app, id) → live sessions for a user

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select, text

from hrdesk.app import create_app
from hrdesk.app.extensions import db as _db
from hrdesk.app.models.employee import Employee
from hrdesk.app.models.session import UserSession

DEFAULT_PASSWORD = "Password1"
DEFAULT_AGENT = "pytest-browser/1.0"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire test session.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows between tests in FK-safe order.
    sessions before users (CASCADE would handle it, but be explicit).
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.begin() as conn:
            conn.execute(text("DELETE FROM sessions"))
            conn.execute(text("DELETE FROM users"))
            conn.execute(text("DELETE FROM employees"))


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def seed_employee(app, email: str) -> None:
    """Adds a roster row so `email` is allowed to register."""
    with app.app_context():
        _db.session.add(Employee(
            unique_id=str(uuid.uuid4()),
            first_name="Test",
            last_name="Employee",
            email=email,
        ))
        _db.session.commit()


def register(
    client,
    email: str = "alice@test.com",
    password: str = DEFAULT_PASSWORD,
    role: str = "User",
) -> str:
    """Registers an account (roster row must exist) and returns its external id."""
    resp = client.post(
        "/auth/register",
        json={"email": email, "password": password, "role": role},
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]["externalId"]


def login(
    client,
    email: str = "alice@test.com",
    password: str = DEFAULT_PASSWORD,
    user_agent: str = DEFAULT_AGENT,
) -> dict:
    """Logs in from `user_agent` and returns {"accessToken", "refreshToken"}."""
    resp = client.post(
        "/auth/login",
        json={"email": email, "password": password},
        headers={"User-Agent": user_agent},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def refresh(client, refresh_token: str):
    """POSTs to /auth/refresh and returns the raw HTTP response."""
    return client.post("/auth/refresh", json={"refreshToken": refresh_token})


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def active_session_count(app, external_id: str) -> int:
    """Counts non-revoked sessions owned by `external_id`."""
    with app.app_context():
        return _db.session.execute(
            select(func.count())
            .select_from(UserSession)
            .where(
                UserSession.user_external_id == external_id,
                UserSession.revoked.is_(False),
            )
        ).scalar_one()
