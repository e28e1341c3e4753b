"""
routes/tasks.py — Task route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit on success, return envelope.
  - No business logic. No DB queries.
  - The task cache is fetched from the app (get_task_cache) and passed in.
  - Update and delete evict the task from the cache again after commit.

Endpoints (url_prefix=/api/tasks):
  POST   /create        → 201  create task (caller becomes owner)
  GET    /get           → 200  paginated list (regular users: own tasks only)
  GET    /get/<id>      → 200  single task (cached)
  PUT    /update/<id>   → 200  partial update (owner or collaborator)
  DELETE /delete/<id>   → 200  delete (owner or admin)
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from taskflow.app.extensions import db, get_task_cache
from taskflow.app.middleware.auth_middleware import authorize_roles, require_auth
from taskflow.app.models.enums import Role
from taskflow.app.schemas.task_schema import (
    CreateTaskSchema,
    ListTasksQuerySchema,
    UpdateTaskSchema,
)
from taskflow.app.services import task_service
from taskflow.app.services.result import ServiceResult

tasks_bp = Blueprint("tasks", __name__)


def _respond(result: ServiceResult, commit: bool = False, evict_task_id: int | None = None):
    if commit:
        if result.success:
            db.session.commit()
            if evict_task_id is not None:
                # A reader on another session may have re-cached the
                # pre-commit row between the service's flush and this commit.
                get_task_cache().invalidate(evict_task_id)
        else:
            db.session.rollback()
    return jsonify(result.to_dict()), result.status


@tasks_bp.route("/create", methods=["POST"])
@require_auth
def create_task():
    """POST /create — Create a task owned by the caller."""
    data = CreateTaskSchema().load(request.get_json(force=True, silent=True) or {})
    result = task_service.create_task(
        principal=g.principal,
        data=data,
        session=db.session,
    )
    return _respond(result, commit=True)


@tasks_bp.route("/get", methods=["GET"])
@require_auth
def list_tasks():
    """GET /get?page=&limit=&sortBy=&order= — One page of tasks."""
    query = ListTasksQuerySchema().load(request.args)
    result = task_service.list_tasks(
        principal=g.principal,
        session=db.session,
        page=query["page"],
        limit=query["limit"],
        sort_by=query["sort_by"],
        order=query["order"],
    )
    return _respond(result)


@tasks_bp.route("/get/<int:task_id>", methods=["GET"])
@require_auth
def get_task(task_id: int):
    """GET /get/<id> — Single task; served from the task cache when warm."""
    result = task_service.get_task(
        task_id=task_id,
        session=db.session,
        cache=get_task_cache(),
    )
    return _respond(result)


@tasks_bp.route("/update/<int:task_id>", methods=["PUT"])
@require_auth
def update_task(task_id: int):
    """PUT /update/<id> — Partial update by the owner or a collaborator."""
    data = UpdateTaskSchema().load(request.get_json(force=True, silent=True) or {})
    result = task_service.update_task(
        task_id=task_id,
        principal=g.principal,
        data=data,
        session=db.session,
        cache=get_task_cache(),
    )
    return _respond(result, commit=True, evict_task_id=task_id)


@tasks_bp.route("/delete/<int:task_id>", methods=["DELETE"])
@require_auth
def delete_task(task_id: int):
    """DELETE /delete/<id> — Delete by the owner or an admin."""
    if current_app.config.get("TASK_DELETE_ADMIN_ONLY"):
        authorize_roles(Role.ADMIN)

    result = task_service.delete_task(
        task_id=task_id,
        principal=g.principal,
        session=db.session,
        cache=get_task_cache(),
    )
    return _respond(result, commit=True, evict_task_id=task_id)
