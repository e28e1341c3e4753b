"""
app/logger.py — JSON log output with per-request correlation ids.

Every record written through the root logger is one JSON object on stdout:
  {"time", "level", "name", "message", "request_id", ...extras}

request_id is taken from the X-Request-ID / X-Correlation-ID request header
when the client sends one, otherwise a uuid4 is minted once per request. The
id is echoed back in the X-Request-ID response header.

Modules log through logging.getLogger(__name__); nothing here is imported by
services, only by the app factory.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = ("X-Request-ID", "X-Correlation-ID")

# Attributes passed via `extra=` that are copied into the JSON payload.
EXTRA_KEYS = ("operation", "code", "task_id", "user_id", "status", "path", "method")


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for key in EXTRA_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamps request_id on every record (None outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = ensure_request_id() if has_request_context() else None
        return True


def ensure_request_id() -> str:
    """Returns the current request's id, assigning one on first use."""
    if not has_request_context():
        return str(uuid4())

    request_id = getattr(g, "request_id", None)
    if request_id:
        return request_id

    for header in CORRELATION_HEADERS:
        value = request.headers.get(header)
        if value:
            g.request_id = value
            return value

    g.request_id = str(uuid4())
    return g.request_id


def configure_logging(level: str | int = "INFO") -> None:
    """Replaces root handlers with one JSON stdout handler at `level`."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        level = resolved if isinstance(resolved, int) else logging.INFO
    root.setLevel(level)


def init_app(app: Flask) -> None:
    """Seeds a request id before each request and echoes it on the response."""
    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:
        ensure_request_id()

    @app.after_request
    def _inject_request_id_header(response):
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["configure_logging", "init_app", "ensure_request_id", "JSONFormatter"]
