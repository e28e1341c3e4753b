"""
services/token_service.py — Access/refresh token lifecycle.

Responsibilities:
  - Issue an access + refresh token pair for a user
  - Verify an access token and produce a Principal
  - Exchange a refresh token for a new access token
  - Acknowledge logout
  - Purge expired refresh-token rows

Token design:
  - Access token: JWT (HS256), 15 min TTL, signed with JWT_SECRET_KEY.
    Claims: sub (user id as str), role, type="access", iat, exp, jti.
    Never persisted.
  - Refresh token: JWT (HS256), 7 day TTL, signed with JWT_REFRESH_SECRET_KEY.
    Same identity claims, type="refresh". Its SHA-256 hash is stored in
    refresh_tokens together with expires_at. A refresh token is accepted only
    if its signature and exp are valid AND its row still exists AND the row's
    expires_at has not passed. Deleting the row revokes the token.
  - Refresh tokens are NOT rotated on use, and logout does NOT delete the row.
    A stolen refresh token therefore stays usable until it expires; see
    DESIGN.md "Open questions".

current_app.config is read here for secrets and TTLs only. Callers own the
transaction: functions that write only flush.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from taskflow.app.errors import AppError, ErrorCode
from taskflow.app.models.enums import Role
from taskflow.app.models.refresh_token import RefreshToken
from taskflow.app.models.user import User
from taskflow.app.services.permissions import Principal
from taskflow.app.services.result import ServiceResult, service_result

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw token string. Used for refresh token storage."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for DateTime(timezone=True) columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _algorithm() -> str:
    return current_app.config.get("JWT_ALGORITHM", "HS256")


def _sign(claims: dict, secret: str, ttl: timedelta, now: datetime) -> str:
    payload = {
        **claims,
        "iat": now,
        "exp": now + ttl,
        # Guarantees each issued token is unique even if generated in the same second.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, secret, algorithm=_algorithm())


def _identity_claims(user_id: int, role: Role, token_type: str) -> dict:
    return {"sub": str(user_id), "role": role.value, "type": token_type}


def _create_access_token(user_id: int, role: Role, now: datetime | None = None) -> str:
    return _sign(
        _identity_claims(user_id, role, ACCESS_TOKEN_TYPE),
        current_app.config["JWT_SECRET_KEY"],
        current_app.config["JWT_ACCESS_TOKEN_EXPIRES"],
        now or datetime.now(timezone.utc),
    )


def _create_refresh_token(user_id: int, role: Role, session: Session) -> str:
    """
    Signs a refresh token and stores its hash with the matching expiry.
    Returns the raw token, which is handed to the client once.
    """
    now = datetime.now(timezone.utc)
    ttl = current_app.config["JWT_REFRESH_TOKEN_EXPIRES"]
    raw_token = _sign(
        _identity_claims(user_id, role, REFRESH_TOKEN_TYPE),
        current_app.config["JWT_REFRESH_SECRET_KEY"],
        ttl,
        now,
    )

    session.add(RefreshToken(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=now + ttl,
    ))
    # flush so the row exists before we return; commit is the route's job
    session.flush()
    return raw_token


def _principal_from_claims(payload: dict, expected_type: str) -> Principal:
    """
    Builds a Principal from decoded claims. Raises ValueError when the claims
    are structurally wrong (type mismatch, non-integer sub, unknown role).
    """
    if payload.get("type") != expected_type:
        raise ValueError(f"expected a {expected_type} token")
    user_id = int(payload["sub"])
    role = Role.parse(payload.get("role"))
    return Principal(user_id=user_id, role=role)


# ── Public service functions ───────────────────────────────────────────────

def issue_token_pair(user: User, session: Session) -> dict:
    """
    Issues an access + refresh token pair for `user`.

    Side effect: one RefreshToken row is added (flushed, not committed).

    Returns: {"accessToken": "...", "refreshToken": "..."}
    """
    role = Role.parse(user.role)
    tokens = {
        "accessToken": _create_access_token(user.id, role),
        "refreshToken": _create_refresh_token(user.id, role, session),
    }
    logger.info("Issued token pair for user_id=%s", user.id)
    return tokens


def verify_access_token(raw_token: str | None) -> Principal:
    """
    Verifies an access token and returns the Principal it encodes.

    Raises:
      AppError(TOKEN_MISSING, 401) — no token supplied
      AppError(TOKEN_EXPIRED, 403) — valid signature, exp in the past
      AppError(TOKEN_INVALID, 403) — bad signature, malformed, wrong claims
    """
    if not raw_token:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "No token provided.",
            401,
        )

    try:
        payload = jwt.decode(
            raw_token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[_algorithm()],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Use POST /api/users/refresh-token to obtain a new one.",
            403,
        )
    except jwt.InvalidTokenError:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Invalid token.",
            403,
        )

    try:
        return _principal_from_claims(payload, ACCESS_TOKEN_TYPE)
    except (KeyError, TypeError, ValueError):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Invalid token.",
            403,
        )


@service_result("refresh_token")
def refresh(raw_refresh_token: str | None, session: Session) -> ServiceResult:
    """
    Exchanges a refresh token for a new access token.

    The refresh token itself is NOT rotated: the same value keeps working
    until it expires or its row is deleted.

    Fails:
      REFRESH_TOKEN_MISSING (400) — no token in the body
      REFRESH_TOKEN_INVALID (403) — bad signature, expired, or no live row
    """
    if not raw_refresh_token:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_MISSING,
            "Refresh token is required.",
            400,
            field="refreshToken",
        )

    invalid = AppError(
        ErrorCode.REFRESH_TOKEN_INVALID,
        "Invalid or expired refresh token.",
        403,
    )

    try:
        payload = jwt.decode(
            raw_refresh_token,
            current_app.config["JWT_REFRESH_SECRET_KEY"],
            algorithms=[_algorithm()],
            options={"require": ["exp", "iat", "sub"]},
        )
        principal = _principal_from_claims(payload, REFRESH_TOKEN_TYPE)
    except (jwt.InvalidTokenError, KeyError, TypeError, ValueError):
        raise invalid

    record = session.execute(
        select(RefreshToken).where(RefreshToken.token_hash == _hash_token(raw_refresh_token))
    ).scalar_one_or_none()

    if record is None:
        raise invalid

    if _as_utc(record.expires_at) <= datetime.now(timezone.utc):
        session.delete(record)
        session.flush()
        raise invalid

    return ServiceResult.ok(
        data={"accessToken": _create_access_token(principal.user_id, principal.role)},
        message="Access token refreshed.",
    )


@service_result("logout")
def revoke(raw_access_token: str | None) -> ServiceResult:
    """
    Acknowledges a logout.

    Server-side state is left untouched: the access token expires on its own
    and refresh-token rows are not deleted. See DESIGN.md "Open questions".
    """
    if not raw_access_token:
        raise AppError(
            ErrorCode.LOGOUT_TOKEN_MISSING,
            "Token required for logout.",
            400,
        )
    return ServiceResult.ok(message="Logout successful.")


def purge_expired_refresh_tokens(session: Session, now: datetime | None = None) -> int:
    """Deletes every refresh-token row whose expires_at has passed. Returns the count."""
    cutoff = now or datetime.now(timezone.utc)
    result = session.execute(
        delete(RefreshToken)
        .where(RefreshToken.expires_at <= cutoff)
        .execution_options(synchronize_session=False)
    )
    session.flush()
    logger.info("Purged %s expired refresh tokens", result.rowcount)
    return result.rowcount
