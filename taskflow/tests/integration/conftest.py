"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing")
    (in-memory SQLite unless TEST_DATABASE_URL points elsewhere).
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order and the task cache
    is cleared, so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)    → registered user dict
  - login(client, ...)       → {"accessToken", "refreshToken", "user"}
  - auth_headers(token)      → {"Authorization": "Bearer <token>"}
  - make_task(client, ...)   → created task dict

These are plain functions so they can be called with arbitrary arguments in
any test.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from taskflow.app import create_app
from taskflow.app.extensions import TASK_CACHE_EXTENSION
from taskflow.app.extensions import db as _db


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
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
    Deletes all rows after EVERY test, children first, and empties the task
    cache. Config flags toggled by a test are restored.
    """
    admin_only = app.config["TASK_DELETE_ADMIN_ONLY"]

    yield

    app.config["TASK_DELETE_ADMIN_ONLY"] = admin_only
    app.extensions[TASK_CACHE_EXTENSION].clear()

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        _db.session.remove()

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM task_collaborators"))
            conn.execute(text("DELETE FROM tasks"))
            conn.execute(text("DELETE FROM refresh_tokens"))
            conn.execute(text("DELETE FROM users"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


@pytest.fixture
def task_cache(app):
    return app.extensions[TASK_CACHE_EXTENSION]


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    username: str = "alice",
    email: str | None = None,
    password: str = "Password1",
    role: str | None = None,
) -> dict:
    """Registers a new user and returns the user dict from the response."""
    if email is None:
        email = f"{username}@test.com"
    body = {"username": username, "email": email, "password": password}
    if role is not None:
        body["role"] = role
    resp = client.post("/api/users/register", json=body)
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, email: str, password: str = "Password1") -> dict:
    """Logs in and returns {"accessToken", "refreshToken", "user"}."""
    resp = client.post(
        "/api/users/login",
        json={"email": email, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def register_and_login(client, username: str, role: str | None = None) -> dict:
    """Registers `username` and returns its login data (tokens + user)."""
    register(client, username=username, role=role)
    return login(client, f"{username}@test.com")


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def make_task(
    client,
    token: str,
    title: str = "Write report",
    deadline: str = "2030-01-01T09:00:00Z",
    priority: str = "medium",
    category: str = "work",
    collaborators: list[int] | None = None,
) -> dict:
    """Creates a task as the token's user and returns the task dict."""
    resp = client.post(
        "/api/tasks/create",
        json={
            "title": title,
            "description": f"{title} description",
            "deadline": deadline,
            "priority": priority,
            "category": category,
            "collaborators": collaborators or [],
        },
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_task failed: {resp.get_json()}"
    return resp.get_json()["data"]
