"""
tests/integration/test_tokens.py — Token lifecycle against the database.

What this file proves:
  - An access token verifies immediately and fails once its window has passed
  - A refresh token works iff its row exists and is unexpired
  - Deleting the row revokes the refresh token at once
  - An expired row found during refresh is removed
  - `flask purge-refresh-tokens` removes expired rows only
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import delete, func, select, update

from taskflow.app.errors import AppError, ErrorCode
from taskflow.app.extensions import db
from taskflow.app.models.enums import Role
from taskflow.app.models.refresh_token import RefreshToken
from taskflow.app.services import token_service

from .conftest import auth_headers, register_and_login


def _refresh(client, token: str):
    return client.post("/api/users/refresh-token", json={"refreshToken": token})


def _refresh_row_count(app) -> int:
    with app.app_context():
        return db.session.execute(select(func.count()).select_from(RefreshToken)).scalar_one()


# ═══════════════════════════════════════════════════════════════════════════
# Access tokens
# ═══════════════════════════════════════════════════════════════════════════

class TestAccessToken:

    def test_fresh_token_verifies_to_principal(self, app):
        with app.app_context():
            raw = token_service._create_access_token(7, Role.ADMIN)
            principal = token_service.verify_access_token(raw)
        assert principal.user_id == 7
        assert principal.role is Role.ADMIN

    def test_token_expires_after_its_window(self, app):
        issued = datetime.now(timezone.utc) - timedelta(minutes=16)
        with app.app_context():
            raw = token_service._create_access_token(7, Role.REGULAR, now=issued)
            with pytest.raises(AppError) as exc_info:
                token_service.verify_access_token(raw)
        assert exc_info.value.code == ErrorCode.TOKEN_EXPIRED
        assert exc_info.value.http_status == 403

    def test_token_still_valid_inside_window(self, app):
        issued = datetime.now(timezone.utc) - timedelta(minutes=14)
        with app.app_context():
            raw = token_service._create_access_token(7, Role.REGULAR, now=issued)
            assert token_service.verify_access_token(raw).user_id == 7

    def test_expired_token_rejected_by_api(self, app, client):
        issued = datetime.now(timezone.utc) - timedelta(hours=1)
        with app.app_context():
            raw = token_service._create_access_token(1, Role.REGULAR, now=issued)
        resp = client.get("/api/tasks/get", headers=auth_headers(raw))
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "TOKEN_EXPIRED"

    def test_missing_token_is_401(self, app):
        with app.app_context():
            with pytest.raises(AppError) as exc_info:
                token_service.verify_access_token(None)
        assert exc_info.value.http_status == 401


# ═══════════════════════════════════════════════════════════════════════════
# Refresh tokens
# ═══════════════════════════════════════════════════════════════════════════

class TestRefreshTokenRecords:

    def test_login_persists_hash_not_token(self, app, client):
        tokens = register_and_login(client, "alice")
        with app.app_context():
            row = db.session.execute(select(RefreshToken)).scalar_one()
            assert row.token_hash != tokens["refreshToken"]
            assert row.token_hash == token_service._hash_token(tokens["refreshToken"])

    def test_deleting_row_revokes_immediately(self, app, client):
        tokens = register_and_login(client, "alice")
        assert _refresh(client, tokens["refreshToken"]).status_code == 200

        with app.app_context():
            db.session.execute(delete(RefreshToken))
            db.session.commit()

        resp = _refresh(client, tokens["refreshToken"])
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "REFRESH_TOKEN_INVALID"

    def test_expired_row_is_rejected_and_removed(self, app, client):
        tokens = register_and_login(client, "alice")
        with app.app_context():
            db.session.execute(
                update(RefreshToken).values(
                    expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
                )
            )
            db.session.commit()

        resp = _refresh(client, tokens["refreshToken"])

        assert resp.status_code == 403
        assert _refresh_row_count(app) == 0


# ═══════════════════════════════════════════════════════════════════════════
# flask purge-refresh-tokens
# ═══════════════════════════════════════════════════════════════════════════

class TestPurgeCommand:

    def test_purges_only_expired_rows(self, app, client):
        register_and_login(client, "alice")
        register_and_login(client, "bob")
        with app.app_context():
            oldest = db.session.execute(
                select(RefreshToken).order_by(RefreshToken.id)
            ).scalars().first()
            oldest.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
            db.session.commit()

        result = app.test_cli_runner().invoke(args=["purge-refresh-tokens"])

        assert result.exit_code == 0
        assert "Purged 1 expired refresh token(s)." in result.output
        assert _refresh_row_count(app) == 1
