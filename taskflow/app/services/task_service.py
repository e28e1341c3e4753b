"""
services/task_service.py — Task use cases (create, list, get, update, delete).

Orchestrates persistence, the permission evaluator and the task cache.

Authorization rules (see services/permissions.py):
  - Create: any authenticated principal; becomes the owner
  - List:   regular principals see only their own tasks; admins see all
  - Get:    any authenticated principal (no ownership check)
  - Update: owner or collaborator (FORBIDDEN, 403)
  - Delete: owner or admin (FORBIDDEN, 403)
  A missing task is TASK_NOT_FOUND (404), checked before permissions.

Cache rules:
  - Only get_task reads and populates the cache.
  - update_task loads straight from the database (never from the cache) so
    authorization sees the current owner/collaborators.
  - update_task AND delete_task invalidate the entry before returning.

Layer rules:
  - No Flask imports. No request, g, or HTTP knowledge.
  - Receives plain values plus the session and cache; returns ServiceResult.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from taskflow.app.errors import AppError, ErrorCode
from taskflow.app.models.enums import Priority
from taskflow.app.models.task import Task, TaskCollaborator
from taskflow.app.models.user import User
from taskflow.app.services.permissions import (
    Principal,
    TaskOperation,
    authorize,
    owner_filter_for,
)
from taskflow.app.services.result import ServiceResult, service_result
from taskflow.app.services.task_cache import TaskCache

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT_BY = "deadline"
DEFAULT_ORDER = "asc"

# Wire name → column. Anything else is rejected rather than passed to ORDER BY.
SORTABLE_COLUMNS = {
    "deadline":  Task.deadline,
    "title":     Task.title,
    "priority":  Task.priority,
    "category":  Task.category,
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
}

_REQUIRED_TEXT_FIELDS = ("title", "description", "category")


# ── Serialization ──────────────────────────────────────────────────────────

def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite drops tzinfo; every stored timestamp is UTC.
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def build_task_dict(task: Task) -> dict[str, Any]:
    """Serialises a Task to the plain dict used for responses and cache snapshots."""
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "deadline": _isoformat(task.deadline),
        "priority": Priority(task.priority).value,
        "category": task.category,
        "ownerId": task.owner_id,
        "collaborators": list(task.collaborator_ids),
        "createdAt": _isoformat(task.created_at),
        "updatedAt": _isoformat(task.updated_at),
    }


# ── Private helpers ────────────────────────────────────────────────────────

def _get_task_or_404(task_id: int, session: Session) -> Task:
    """Returns the Task or raises TASK_NOT_FOUND (404)."""
    task = session.get(Task, task_id)
    if task is None:
        raise AppError(
            ErrorCode.TASK_NOT_FOUND,
            "Task not found.",
            404,
        )
    return task


def _require_text(data: dict, field: str) -> str:
    """Raises MISSING_FIELD (400) unless data[field] is a non-blank string."""
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise AppError(
            ErrorCode.MISSING_FIELD,
            f"'{field}' is required and cannot be empty.",
            400,
            field=field,
        )
    return value.strip()


def _require_deadline(data: dict) -> datetime:
    value = data.get("deadline")
    if not isinstance(value, datetime):
        raise AppError(
            ErrorCode.MISSING_FIELD,
            "'deadline' is required.",
            400,
            field="deadline",
        )
    return value


def _parse_priority(value: Any) -> Priority:
    try:
        return Priority(value)
    except ValueError:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            "priority must be one of: low, medium, high.",
            400,
            field="priority",
        )


def _normalize_collaborators(user_ids: Iterable[int], session: Session) -> list[int]:
    """
    De-duplicates collaborator ids, keeping first-seen order, and checks that
    every id belongs to an existing user (UNKNOWN_COLLABORATOR, 400).
    """
    ordered = list(dict.fromkeys(user_ids))
    if not ordered:
        return []

    found = set(session.execute(
        select(User.id).where(User.id.in_(ordered))
    ).scalars().all())

    for user_id in ordered:
        if user_id not in found:
            raise AppError(
                ErrorCode.UNKNOWN_COLLABORATOR,
                f"User {user_id} does not exist and cannot be a collaborator.",
                400,
                field="collaborators",
            )
    return ordered


def _set_collaborators(task: Task, user_ids: list[int]) -> None:
    """
    Replaces the task's collaborator list. Links for users that stay are
    reused (only their position changes); dropped links are deleted through
    the delete-orphan cascade.
    """
    existing = {link.user_id: link for link in task.collaborator_links}
    links = []
    for position, user_id in enumerate(user_ids):
        link = existing.get(user_id) or TaskCollaborator(user_id=user_id)
        link.position = position
        links.append(link)
    task.collaborator_links = links


def _validate_paging(page: int, limit: int) -> None:
    if page < 1:
        raise AppError(ErrorCode.INVALID_FIELD, "page must be at least 1.", 400, field="page")
    if limit < 1:
        raise AppError(ErrorCode.INVALID_FIELD, "limit must be greater than 0.", 400, field="limit")


def _order_clause(sort_by: str, order: str):
    column = SORTABLE_COLUMNS.get(sort_by)
    if column is None:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            f"sortBy must be one of: {', '.join(SORTABLE_COLUMNS)}.",
            400,
            field="sortBy",
        )
    if order not in ("asc", "desc"):
        raise AppError(ErrorCode.INVALID_FIELD, "order must be 'asc' or 'desc'.", 400, field="order")
    return column.desc() if order == "desc" else column.asc()


# ── Public service functions ───────────────────────────────────────────────

@service_result("create_task")
def create_task(principal: Principal, data: dict, session: Session) -> ServiceResult:
    """
    Creates a task owned by `principal`.

    Args:
        principal: The authenticated caller; becomes the owner.
        data:      Validated dict from CreateTaskSchema (snake_case keys).

    Fails MISSING_FIELD (400) if title/description/category are blank or
    deadline is absent; UNKNOWN_COLLABORATOR (400) for unknown user ids.
    """
    title, description, category = (_require_text(data, f) for f in _REQUIRED_TEXT_FIELDS)
    deadline = _require_deadline(data)
    priority = _parse_priority(data.get("priority") or Priority.MEDIUM)
    collaborators = _normalize_collaborators(data.get("collaborators") or [], session)

    task = Task(
        title=title,
        description=description,
        deadline=deadline,
        priority=priority,
        category=category,
        owner_id=principal.user_id,
    )
    _set_collaborators(task, collaborators)
    session.add(task)
    session.flush()

    logger.info("Task created: task_id=%s owner_id=%s", task.id, task.owner_id)
    return ServiceResult.created(build_task_dict(task), message="Task created successfully.")


@service_result("list_tasks")
def list_tasks(
        principal: Principal,
        session: Session,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
        sort_by: str = DEFAULT_SORT_BY,
        order: str = DEFAULT_ORDER,
) -> ServiceResult:
    """
    Returns one page of tasks plus pagination metadata.

    Regular principals are restricted to tasks they own; admins are unscoped.
    Ties on the sort column are broken by id so pages are stable.

    Response meta: {"pagination": {page, limit, totalTasks, totalPages}}
    """
    _validate_paging(page, limit)
    order_by = _order_clause(sort_by, order)

    stmt = select(Task).options(selectinload(Task.collaborator_links))
    count_stmt = select(func.count()).select_from(Task)

    owner_id = owner_filter_for(principal)
    if owner_id is not None:
        stmt = stmt.where(Task.owner_id == owner_id)
        count_stmt = count_stmt.where(Task.owner_id == owner_id)

    stmt = (
        stmt.order_by(order_by, Task.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    tasks = session.execute(stmt).scalars().all()
    total = session.execute(count_stmt).scalar_one()

    return ServiceResult.ok(
        data=[build_task_dict(t) for t in tasks],
        message="Tasks retrieved successfully.",
        meta={
            "pagination": {
                "page": page,
                "limit": limit,
                "totalTasks": total,
                "totalPages": math.ceil(total / limit),
            }
        },
    )


@service_result("get_task")
def get_task(task_id: int, session: Session, cache: TaskCache) -> ServiceResult:
    """
    Returns a single task, from the cache when a live snapshot exists.
    On a miss the task is loaded, cached, and returned.
    """
    cached = cache.get(task_id)
    if cached is not None:
        logger.debug("Task cache hit: task_id=%s", task_id)
        return ServiceResult.ok(data=cached)

    task = _get_task_or_404(task_id, session)
    snapshot = build_task_dict(task)
    cache.put(task_id, snapshot)
    return ServiceResult.ok(data=snapshot)


@service_result("update_task")
def update_task(
        task_id: int,
        principal: Principal,
        data: dict,
        session: Session,
        cache: TaskCache,
) -> ServiceResult:
    """
    Partially updates a task.

    Args:
        data: Validated partial dict from UpdateTaskSchema. Only keys present
              are applied. The owner is never an updatable field.

    Fails TASK_NOT_FOUND (404), FORBIDDEN (403) unless owner/collaborator,
    MISSING_FIELD (400) for blanked required text, UNKNOWN_COLLABORATOR (400).
    """
    task = _get_task_or_404(task_id, session)
    authorize(task, principal, TaskOperation.UPDATE)

    for field in _REQUIRED_TEXT_FIELDS:
        if field in data:
            setattr(task, field, _require_text(data, field))

    if "deadline" in data:
        task.deadline = _require_deadline(data)

    if "priority" in data:
        task.priority = _parse_priority(data["priority"])

    if "collaborators" in data:
        _set_collaborators(task, _normalize_collaborators(data["collaborators"] or [], session))

    task.updated_at = datetime.now(timezone.utc)
    session.flush()
    cache.invalidate(task_id)

    logger.info("Task updated: task_id=%s by user_id=%s", task_id, principal.user_id)
    return ServiceResult.ok(data=build_task_dict(task), message="Task updated successfully.")


@service_result("delete_task")
def delete_task(
        task_id: int,
        principal: Principal,
        session: Session,
        cache: TaskCache,
) -> ServiceResult:
    """
    Hard-deletes a task. Only the owner or an admin may delete.
    The cache entry is dropped so a deleted task is never served.
    """
    task = _get_task_or_404(task_id, session)
    authorize(task, principal, TaskOperation.DELETE)

    session.delete(task)
    session.flush()
    cache.invalidate(task_id)

    logger.info("Task deleted: task_id=%s by user_id=%s", task_id, principal.user_id)
    return ServiceResult.ok(message="Task deleted successfully.")
