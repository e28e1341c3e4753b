"""
routes/users.py — User and session route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session when the service succeeded
  - Return the result envelope with the result's status

No business logic here. No DB queries.

Endpoints (url_prefix=/api/users):
  POST   /register       → 201
  POST   /login          → 200
  POST   /refresh-token  → 200
  GET    /<id>           → 200
  POST   /logout         → 200
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from taskflow.app.extensions import db
from taskflow.app.middleware.auth_middleware import bearer_token, require_auth
from taskflow.app.schemas.user_schema import LoginSchema, RegisterSchema
from taskflow.app.services import token_service, user_service
from taskflow.app.services.result import ServiceResult

users_bp = Blueprint("users", __name__)


def _respond(result: ServiceResult, commit: bool = False):
    if commit:
        if result.success:
            db.session.commit()
        else:
            db.session.rollback()
    return jsonify(result.to_dict()), result.status


@users_bp.route("/register", methods=["POST"])
def register():
    """POST /register — Create an account. (No auth required.)"""
    data = RegisterSchema().load(request.get_json(force=True, silent=True) or {})
    result = user_service.register_user(
        username=data["username"],
        email=data["email"],
        password=data["password"],
        role=data["role"],
        session=db.session,
    )
    return _respond(result, commit=True)


@users_bp.route("/login", methods=["POST"])
def login():
    """POST /login — Authenticate; return tokens. (No auth required.)"""
    data = LoginSchema().load(request.get_json(force=True, silent=True) or {})
    result = user_service.login_user(
        email=data["email"],
        password=data["password"],
        session=db.session,
    )
    return _respond(result, commit=True)


@users_bp.route("/refresh-token", methods=["POST"])
def refresh_token():
    """POST /refresh-token — Exchange a refresh token for a new access token."""
    body = request.get_json(force=True, silent=True)
    raw_token = body.get("refreshToken") if isinstance(body, dict) else None
    result = token_service.refresh(
        raw_refresh_token=raw_token,
        session=db.session,
    )
    # Commit on failure too: an expired row found during the lookup is purged.
    db.session.commit()
    return _respond(result)


@users_bp.route("/<int:user_id>", methods=["GET"])
@require_auth
def get_user(user_id: int):
    """GET /<id> — Public profile of any user. (Auth required.)"""
    result = user_service.get_user_by_id(user_id=user_id, session=db.session)
    return _respond(result)


@users_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """POST /logout — Acknowledge logout. (Auth required.)"""
    result = user_service.logout_user(bearer_token())
    return _respond(result)
