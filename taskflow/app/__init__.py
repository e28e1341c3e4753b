"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances (each with its own cache)
           - Clean separation between app creation and app startup
           - `flask db upgrade` / `flask purge-refresh-tokens` without a server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure JSON logging and request-id propagation
  3. Initialise extensions (SQLAlchemy, Marshmallow) and the task cache
  4. Register the route blueprints under /api
  5. Register global error handlers (AppError → JSON, Exception → 500)
  6. Register CLI commands

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic or db.create_all() inspects it.
"""

from __future__ import annotations

import logging
import os

from flask import Flask, jsonify, request
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from taskflow.config import config_by_name, validate_production_config

# Not named `logger`: importing the taskflow.app.logger submodule would rebind it.
log = logging.getLogger(__name__)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str | None = None) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Falls back to the FLASK_ENV environment variable, then
                     to "development".

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    config_name = config_name or os.getenv("FLASK_ENV") or "development"

    app = Flask(__name__)
    # Keep envelope keys in insertion order: success, message, data, pagination.
    app.json.sort_keys = False

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    # ── Logging ────────────────────────────────────────────────────────────
    from taskflow.app import logger as app_logger
    app_logger.configure_logging(app.config["LOG_LEVEL"])
    app_logger.init_app(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from taskflow.app.extensions import TASK_CACHE_EXTENSION, db, ma
    from taskflow.app.services.task_cache import TaskCache
    db.init_app(app)
    ma.init_app(app)
    app.extensions[TASK_CACHE_EXTENSION] = TaskCache(
        ttl_seconds=app.config["TASK_CACHE_TTL_SECONDS"],
    )

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from taskflow.app.models import refresh_token, task, user  # noqa: F401

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    from taskflow.app import cli
    cli.init_app(app)

    log.info("Taskflow app created with %s config", config_name)
    return app


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints.

    The url_prefix is set here so individual route files only specify the
    path relative to their resource (e.g. "/create", "/get/<int:task_id>").
    """
    from taskflow.app.routes.tasks import tasks_bp
    from taskflow.app.routes.users import users_bp

    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(tasks_bp, url_prefix="/api/tasks")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct status
      ValidationError → marshmallow schema errors as MISSING_FIELD /
                        INVALID_FIELD (or a registered code) responses (400)
      HTTPException   → werkzeug 404/405/... in the same envelope
      Exception       → generic INTERNAL_ERROR (500); traceback logged only

    Stack traces never leave the server.
    """
    from taskflow.app.errors import AppError, ErrorCode

    known_codes = {
        value for name, value in vars(ErrorCode).items() if not name.startswith("_")
    }

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, route) into the standard error envelope.
        """
        log.warning(
            "%s %s rejected: %s",
            request.method,
            request.path,
            error.code,
            extra={"code": error.code, "status": error.http_status},
        )
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns the FIRST schema error only: one error, not many.

        A message that is itself a registered ErrorCode (e.g. INVALID_ROLE) is
        used as the code; "Missing data for required field." maps to
        MISSING_FIELD; anything else is INVALID_FIELD.
        """
        field, raw_message = _first_validation_message(error.messages)

        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = f"{field} is required." if field else raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        return jsonify(AppError(code, message, 400, field=field).to_dict()), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        code = (error.name or "HTTP_ERROR").upper().replace(" ", "_")
        body = AppError(code, error.description or error.name, error.code or 500).to_dict()
        return jsonify(body), error.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.
        The full traceback goes to the log, never to the client.
        """
        log.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.path,
            extra={"method": request.method, "path": request.path},
        )
        body = AppError(
            ErrorCode.INTERNAL_ERROR,
            "An unexpected error occurred. Please try again later.",
            500,
        ).to_dict()
        return jsonify(body), 500


def _first_validation_message(messages) -> tuple[str | None, str]:
    """
    Flattens marshmallow's messages to the first (field, message) pair.

    messages may be {"title": ["..."]}, {"collaborators": {0: ["..."]}},
    {"_schema": ["..."]} or a bare list.
    """
    if isinstance(messages, list):
        return None, str(messages[0]) if messages else "Invalid input."

    if isinstance(messages, dict) and messages:
        field_name, field_errors = next(iter(messages.items()))
        field = field_name if field_name != "_schema" else None
        while isinstance(field_errors, dict) and field_errors:
            field_errors = next(iter(field_errors.values()))
        if isinstance(field_errors, list):
            return field, str(field_errors[0]) if field_errors else "Invalid value."
        return field, str(field_errors)

    return None, "Invalid input."


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response


def _code_to_message(code: str) -> str:
    """
    Human-readable default message for a registered code raised as the
    message of a marshmallow ValidationError.
    """
    _messages = {
        "INVALID_ROLE": "role must be one of: regular, admin.",
        "UNKNOWN_COLLABORATOR": "Every collaborator must be an existing user id.",
    }
    return _messages.get(code, "Invalid input.")
