"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy and marshmallow as module-level objects so they can be
imported anywhere without creating circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` or `ma` from here wherever needed.

    from taskflow.app.extensions import db, ma

The task cache is NOT a module-level object. It is created per application in
create_app() and stored on app.extensions[TASK_CACHE_EXTENSION]; routes fetch
it through get_task_cache() and hand it to the services as an argument.
"""

from flask import current_app
from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Marshmallow instance, available for SQLAlchemy model serialization helpers.
#
# IMPORTANT: schema inheritance rule.
#   All validation Schema classes (in app/schemas/) inherit from
#   marshmallow.Schema directly, NOT from ma.Schema. ma.Schema requires an
#   active Flask application context and unit tests in tests/unit/ run
#   without one.
ma = Marshmallow()

TASK_CACHE_EXTENSION = "task_cache"


def get_task_cache():
    """Returns the TaskCache bound to the current application."""
    return current_app.extensions[TASK_CACHE_EXTENSION]
