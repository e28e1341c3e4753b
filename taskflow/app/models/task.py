"""
models/task.py — Task and TaskCollaborator table definitions.

No business logic. No imports from services or routes.

Key design points:
  - owner_id is written once at creation; no code path updates it.
  - Collaborators are an ORDERED SET of user ids: one TaskCollaborator row per
    (task_id, user_id), ordered by `position`. The composite primary key keeps
    a user at most once per task.
  - Priority is a Python enum so services and schemas never repeat literals.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskflow.app.extensions import db
from taskflow.app.models.enums import Priority, enum_values


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(db.Model):
    __tablename__ = "tasks"

    __table_args__ = (
        # Also enforced by the marshmallow schema and task_service.
        CheckConstraint("LENGTH(TRIM(title)) > 0", name="ck_tasks_title_nonempty"),
        CheckConstraint("LENGTH(TRIM(description)) > 0", name="ck_tasks_description_nonempty"),
        CheckConstraint("LENGTH(TRIM(category)) > 0", name="ck_tasks_category_nonempty"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False)

    deadline: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,  # default list sort
    )

    priority: Mapped[Priority] = mapped_column(
        Enum(
            Priority,
            name="task_priority_enum",
            native_enum=False,
            length=16,
            values_callable=enum_values,
        ),
        nullable=False,
        default=Priority.MEDIUM,
        server_default=Priority.MEDIUM.value,
    )

    category: Mapped[str] = mapped_column(String(100), nullable=False)

    # ON DELETE CASCADE: a user's tasks go with the user.
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,  # regular users list by owner
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    owner: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="tasks",
    )

    collaborator_links: Mapped[list["TaskCollaborator"]] = relationship(
        "TaskCollaborator",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskCollaborator.position",
    )

    # ── Convenience property ───────────────────────────────────────────────
    @property
    def collaborator_ids(self) -> list[int]:
        """Collaborator user ids in insertion order."""
        return [link.user_id for link in self.collaborator_links]

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Task id={self.id} owner_id={self.owner_id} title={self.title!r}>"


class TaskCollaborator(db.Model):
    __tablename__ = "task_collaborators"

    task_id: Mapped[int] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"),
        primary_key=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    task: Mapped[Task] = relationship("Task", back_populates="collaborator_links")

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<TaskCollaborator task_id={self.task_id} "
            f"user_id={self.user_id} position={self.position}>"
        )
