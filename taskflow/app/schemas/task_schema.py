"""
schemas/task_schema.py — Marshmallow schemas for /api/tasks endpoints.

Validation responsibility:
  - This file:
      - Field presence and types, priority enum values
      - Non-empty-after-trim enforcement for title/description/category
      - Deadline parsing (ISO-8601 date or datetime; naive values are UTC)
      - List query parameters (page, limit, sortBy, order)
      - Unknown fields are rejected, so the owner can never be set or changed
        through a request body
  - services/task_service.py:
      - TASK_NOT_FOUND (404), FORBIDDEN (403)   — require the DB record
      - UNKNOWN_COLLABORATOR (400)              — requires a DB lookup

Wire names are camelCase (sortBy); loaded keys are snake_case (sort_by).

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from datetime import datetime, timezone

from marshmallow import EXCLUDE, RAISE, Schema, ValidationError, fields, validate

from taskflow.app.models.enums import Priority
from taskflow.app.services.task_service import (
    DEFAULT_LIMIT,
    DEFAULT_ORDER,
    DEFAULT_PAGE,
    DEFAULT_SORT_BY,
    SORTABLE_COLUMNS,
)

MAX_LIMIT = 100


class Deadline(fields.Field):
    """
    Accepts "2025-01-01", "2025-01-01T09:30:00" or "2025-01-01T09:30:00Z" and
    returns a timezone-aware UTC datetime. Date-only values mean midnight UTC.
    """

    default_error_messages = {"invalid": "Not a valid ISO-8601 date or datetime."}

    def _deserialize(self, value, attr, data, **kwargs):
        if not isinstance(value, str):
            raise self.make_error("invalid")
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as error:
            raise self.make_error("invalid") from error
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    def _serialize(self, value, attr, obj, **kwargs):
        return value.isoformat() if value is not None else None


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("Field cannot be empty or whitespace.")


def _priority_field(**kwargs) -> fields.Str:
    return fields.Str(
        validate=validate.OneOf(
            [p.value for p in Priority],
            error="priority must be one of: low, medium, high.",
        ),
        **kwargs,
    )


class CreateTaskSchema(Schema):
    """POST /api/tasks/create"""

    class Meta:
        unknown = RAISE

    title = fields.Str(
        required=True,
        validate=[validate.Length(max=200), _validate_non_empty_after_trim],
    )
    description = fields.Str(required=True, validate=_validate_non_empty_after_trim)
    deadline = Deadline(required=True)
    priority = _priority_field(load_default=Priority.MEDIUM.value)
    category = fields.Str(
        required=True,
        validate=[validate.Length(max=100), _validate_non_empty_after_trim],
    )
    collaborators = fields.List(fields.Int(strict=True), load_default=list)


class UpdateTaskSchema(Schema):
    """
    PUT /api/tasks/update/<id> — partial update; every field is optional.

    Only keys present in the body are applied by task_service.update_task.
    """

    class Meta:
        unknown = RAISE

    title = fields.Str(validate=[validate.Length(max=200), _validate_non_empty_after_trim])
    description = fields.Str(validate=_validate_non_empty_after_trim)
    deadline = Deadline()
    priority = _priority_field()
    category = fields.Str(validate=[validate.Length(max=100), _validate_non_empty_after_trim])
    collaborators = fields.List(fields.Int(strict=True))


class ListTasksQuerySchema(Schema):
    """GET /api/tasks/get query string. Unknown query parameters are ignored."""

    class Meta:
        unknown = EXCLUDE

    page = fields.Int(load_default=DEFAULT_PAGE, validate=validate.Range(min=1))
    limit = fields.Int(load_default=DEFAULT_LIMIT, validate=validate.Range(min=1, max=MAX_LIMIT))
    sort_by = fields.Str(
        data_key="sortBy",
        load_default=DEFAULT_SORT_BY,
        validate=validate.OneOf(list(SORTABLE_COLUMNS)),
    )
    order = fields.Str(
        load_default=DEFAULT_ORDER,
        validate=validate.OneOf(["asc", "desc"]),
    )
