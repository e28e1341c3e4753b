"""
services/result.py — Tagged result returned by every public service use case.

Service functions signal expected failures (not found, forbidden, conflict,
bad input) by RETURNING a failed ServiceResult instead of raising across the
API boundary. Routes turn a result into a response with:

    return jsonify(result.to_dict()), result.status

Private helpers inside a service may still raise AppError; the
@service_result decorator catches it at the public function boundary, logs
it, and converts it. Anything that is not an AppError (database down, bug)
propagates to the global 500 handler untouched.
"""

from __future__ import annotations

import functools
import inspect
import logging
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any, Callable

from taskflow.app.errors import AppError


@dataclass(frozen=True)
class ServiceResult:
    status: int
    success: bool
    message: str
    data: Any = None
    code: str | None = None
    field: str | None = None
    # Extra top-level response keys, e.g. {"pagination": {...}} for lists.
    meta: dict[str, Any] = dataclass_field(default_factory=dict)

    @classmethod
    def ok(
            cls,
            data: Any = None,
            message: str = "Request successful.",
            status: int = 200,
            meta: dict[str, Any] | None = None,
    ) -> "ServiceResult":
        return cls(status=status, success=True, message=message, data=data, meta=meta or {})

    @classmethod
    def created(cls, data: Any, message: str = "Resource created successfully.") -> "ServiceResult":
        return cls.ok(data=data, message=message, status=201)

    @classmethod
    def fail(
            cls,
            code: str,
            message: str,
            status: int,
            field: str | None = None,
    ) -> "ServiceResult":
        return cls(status=status, success=False, message=message, code=code, field=field)

    @classmethod
    def from_error(cls, error: AppError) -> "ServiceResult":
        return cls.fail(error.code, error.message, error.http_status, field=error.field)

    def to_dict(self) -> dict:
        if not self.success:
            return AppError(self.code or "", self.message, self.status, self.field).to_dict()

        body: dict[str, Any] = {"success": True, "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        body.update(self.meta)
        return body


def service_result(operation: str) -> Callable:
    """
    Decorator for public service functions.

    Converts AppError raised inside the wrapped function into a failed
    ServiceResult and logs it at WARNING with the operation name and the
    arguments that identify the target (ids and emails only; secrets are
    never logged). Arguments are matched by parameter name, so positional
    and keyword calls log the same context.

    Usage:
        @service_result("update_task")
        def update_task(task_id, principal, data, session, cache) -> ServiceResult:
            ...
    """
    def decorator(f: Callable[..., ServiceResult]) -> Callable[..., ServiceResult]:
        logger = logging.getLogger(f.__module__)
        signature = inspect.signature(f)

        @functools.wraps(f)
        def wrapper(*args, **kwargs) -> ServiceResult:
            try:
                return f(*args, **kwargs)
            except AppError as error:
                context = _log_context(signature.bind_partial(*args, **kwargs).arguments)
                logger.warning(
                    "%s failed: code=%s status=%s context=%s",
                    operation,
                    error.code,
                    error.http_status,
                    context,
                    extra={
                        "operation": operation,
                        "code": error.code,
                        "status": error.http_status,
                        **_log_ids(context),
                    },
                )
                return ServiceResult.from_error(error)

        return wrapper

    return decorator


_LOGGABLE_KEYS = ("task_id", "user_id", "email", "principal")


def _log_context(arguments: dict[str, Any]) -> dict[str, Any]:
    return {key: arguments[key] for key in _LOGGABLE_KEYS if key in arguments}


def _log_ids(context: dict[str, Any]) -> dict[str, Any]:
    """task_id / user_id for structured log fields; a principal supplies user_id."""
    ids = {key: context[key] for key in ("task_id", "user_id") if key in context}
    principal = context.get("principal")
    if "user_id" not in ids and principal is not None:
        ids["user_id"] = getattr(principal, "user_id", None)
    return ids
