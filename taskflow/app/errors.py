"""
errors.py — AppError base class and error code registry.

Every error returned by the Taskflow API uses a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - A missing bearer token is 401; a token that is present but fails
    verification is 403. A valid token without the required rights is 403.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"success": False, "message": self.message, "error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_ROLE               = "INVALID_ROLE"
    UNKNOWN_COLLABORATOR       = "UNKNOWN_COLLABORATOR"
    REFRESH_TOKEN_MISSING      = "REFRESH_TOKEN_MISSING"
    LOGOUT_TOKEN_MISSING       = "LOGOUT_TOKEN_MISSING"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    TASK_NOT_FOUND             = "TASK_NOT_FOUND"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = no credential was presented, or the credentials are wrong
    # 403 = a credential was presented but is unusable, or rights are missing
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 403
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 403
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"  # 403
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"
