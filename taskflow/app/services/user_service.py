"""
services/user_service.py — Registration, login, user lookup and logout.

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g
  - current_app.config is read only for BCRYPT_LOG_ROUNDS (and, through
    token_service, for JWT secrets/TTLs)
  - Public functions return a ServiceResult; commits are the route's job

Password storage:
  - Hashed with bcrypt (cost factor from config BCRYPT_LOG_ROUNDS, default 12)
  - Raw password is never stored, never logged, never returned
"""

from __future__ import annotations

import logging

import bcrypt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskflow.app.errors import AppError, ErrorCode
from taskflow.app.models.enums import Role
from taskflow.app.models.user import User
from taskflow.app.services import token_service
from taskflow.app.services.result import ServiceResult, service_result

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def _duplicate_email(email: str) -> AppError:
    return AppError(
        ErrorCode.DUPLICATE_EMAIL,
        "Email already in use.",
        409,
        field="email",
    )


def build_user_dict(user: User) -> dict:
    """Serialises a User to a plain dict. Never includes the password hash."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": Role.parse(user.role).value,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


# ── Public service functions ───────────────────────────────────────────────

@service_result("register_user")
def register_user(
        username: str,
        email: str,
        password: str,
        session: Session,
        role: Role | str | None = None,
) -> ServiceResult:
    """
    Creates a new user account.

    The role defaults to `regular` and is normalised case-insensitively.

    Fails:
      DUPLICATE_EMAIL (409) — email already registered, including when a
                              concurrent registration wins the unique index
      INVALID_ROLE    (400) — role is not regular/admin
    """
    try:
        normalized_role = Role.REGULAR if role is None else Role.parse(role)
    except ValueError:
        raise AppError(
            ErrorCode.INVALID_ROLE,
            "role must be 'regular' or 'admin'.",
            400,
            field="role",
        )

    existing = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()
    if existing is not None:
        raise _duplicate_email(email)

    user = User(
        username=username,
        email=email,
        password_hash=_hash_password(password),
        role=normalized_role,
    )

    session.add(user)
    try:
        session.flush()  # populate user.id; surfaces the unique-index race here
    except IntegrityError:
        # Registration is the only write in this unit of work.
        session.rollback()
        raise _duplicate_email(email)

    logger.info("User registered: user_id=%s role=%s", user.id, normalized_role.value)
    return ServiceResult.created(build_user_dict(user), message="User registered successfully.")


@service_result("login_user")
def login_user(email: str, password: str, session: Session) -> ServiceResult:
    """
    Validates credentials and issues a new access + refresh token pair.

    Fails:
      USER_NOT_FOUND      (404) — no account with that email
      INVALID_CREDENTIALS (401) — password does not match

    Returns data: {"accessToken", "refreshToken", "user"}
    """
    user = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()

    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            "User not found.",
            404,
        )

    if not _check_password(password, user.password_hash):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "Invalid credentials.",
            401,
        )

    tokens = token_service.issue_token_pair(user, session)

    logger.info("User logged in: user_id=%s", user.id)
    return ServiceResult.ok(
        data={**tokens, "user": build_user_dict(user)},
        message="Login successful.",
    )


@service_result("get_user")
def get_user_by_id(user_id: int, session: Session) -> ServiceResult:
    """Fails USER_NOT_FOUND (404) if the id does not exist."""
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            "User not found.",
            404,
        )
    return ServiceResult.ok(data=build_user_dict(user))


def logout_user(raw_access_token: str | None) -> ServiceResult:
    """Logout acknowledgement; see token_service.revoke for what it does not do."""
    return token_service.revoke(raw_access_token)
