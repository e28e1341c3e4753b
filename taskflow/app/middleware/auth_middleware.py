"""
middleware/auth_middleware.py — Bearer-token authentication decorator.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Hands the token to token_service.verify_access_token()
  3. Attaches the resulting Principal to flask.g (g.principal, g.user_id)
  4. Lets the AppError propagate if any step fails

Strict responsibility boundary:
  - This middleware authenticates only. Task ownership/collaboration rules
    live in services/permissions.py and are applied by task_service.
  - authorize_roles() is the one role gate available at route level; it is
    used by the delete route when TASK_DELETE_ADMIN_ONLY is enabled.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header / no token in it
  TOKEN_INVALID  (403) — malformed header, invalid signature, or bad claims
  TOKEN_EXPIRED  (403) — valid token but exp claim is in the past
  FORBIDDEN      (403) — authorize_roles() rejected the principal's role
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import g, request

from taskflow.app.errors import AppError, ErrorCode
from taskflow.app.models.enums import Role
from taskflow.app.services import token_service


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces bearer-token authentication.

    Usage:
        @tasks_bp.route("/get/<int:task_id>")
        @require_auth
        def get_task(task_id):
            principal = g.principal
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def bearer_token() -> str | None:
    """
    Returns the raw token from "Authorization: Bearer <token>", or None when
    the header is absent or carries no token.

    Raises TOKEN_INVALID (403) when the header is present but not a Bearer
    credential.
    """
    auth_header = request.headers.get("Authorization", "").strip()
    if not auth_header:
        return None

    parts = auth_header.split()
    if parts[0].lower() != "bearer" or len(parts) > 2:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            403,
        )
    return parts[1] if len(parts) == 2 else None


def _authenticate_request() -> None:
    """
    Verifies the bearer token and sets g.principal / g.user_id.

    Separated from the decorator wrapper so it can be called directly in
    tests without wrapping a real view function.
    """
    principal = token_service.verify_access_token(bearer_token())
    g.principal = principal
    g.user_id = principal.user_id


def authorize_roles(*roles: Role) -> None:
    """
    Raises FORBIDDEN (403) unless the authenticated principal holds one of
    `roles`. Must run after require_auth.
    """
    principal = getattr(g, "principal", None)
    if principal is None or principal.role not in roles:
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Forbidden: You do not have permission to perform this action.",
            403,
        )
