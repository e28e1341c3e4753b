"""
services/permissions.py — Task permission evaluation.

Pure functions of (task, principal, operation). No DB access, no Flask.

Rules (fixed; not configurable at runtime):
  read    — any authenticated principal
  update  — the task owner, or any collaborator
  delete  — the task owner, or any admin. Collaborators may never delete.

Listing scope is NOT decided here: it shapes a query rather than gating one
object, so task_service.list_tasks applies it via owner_filter_for().

`task` is anything exposing `owner_id` and `collaborator_ids` — a Task ORM
object in production, a SimpleNamespace in unit tests.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from taskflow.app.errors import AppError, ErrorCode
from taskflow.app.models.enums import Role


@dataclass(frozen=True)
class Principal:
    """The authenticated identity derived from a verified access token."""
    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class TaskOperation(str, enum.Enum):
    READ   = "read"
    UPDATE = "update"
    DELETE = "delete"


def is_allowed(task: Any, principal: Principal, operation: TaskOperation) -> bool:
    """Returns True if `principal` may perform `operation` on `task`."""
    is_owner = principal.user_id == task.owner_id

    if operation is TaskOperation.READ:
        return True

    if operation is TaskOperation.UPDATE:
        return is_owner or principal.user_id in set(task.collaborator_ids)

    if operation is TaskOperation.DELETE:
        return is_owner or principal.is_admin

    raise ValueError(f"Unknown task operation: {operation!r}")


def authorize(task: Any, principal: Principal, operation: TaskOperation) -> None:
    """Raises FORBIDDEN (403) unless `principal` may perform `operation` on `task`."""
    if not is_allowed(task, principal, operation):
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You do not have permission to {operation.value} this task.",
            403,
        )


def owner_filter_for(principal: Principal) -> int | None:
    """
    Returns the owner id a task listing must be restricted to, or None for an
    unscoped listing. Regular users only ever see the tasks they own.
    """
    if principal.role is Role.REGULAR:
        return principal.user_id
    return None
