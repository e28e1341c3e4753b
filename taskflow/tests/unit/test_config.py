"""
tests/unit/test_config.py — config classes and the production guard.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from flask import Flask

from taskflow import config
from taskflow.config import config_by_name, validate_production_config


def _production_app(**overrides):
    app = Flask(__name__)
    app.config.update(
        SQLALCHEMY_DATABASE_URI="postgresql://db/taskflow",
        SECRET_KEY="flask-secret",
        JWT_SECRET_KEY="access-secret",
        JWT_REFRESH_SECRET_KEY="refresh-secret",
    )
    app.config.update(overrides)
    return app


def test_config_names():
    assert set(config_by_name) == {"development", "testing", "production"}
    assert config_by_name["testing"] is config.TestingConfig


def test_testing_config_token_lifetimes():
    assert config.TestingConfig.JWT_ACCESS_TOKEN_EXPIRES == timedelta(seconds=900)
    assert config.TestingConfig.JWT_REFRESH_TOKEN_EXPIRES == timedelta(seconds=604800)
    assert config.TestingConfig.TASK_CACHE_TTL_SECONDS == 600
    assert config.TestingConfig.JWT_SECRET_KEY != config.TestingConfig.JWT_REFRESH_SECRET_KEY


def test_production_guard_accepts_distinct_secrets():
    validate_production_config(_production_app())


@pytest.mark.parametrize("overrides, key", [
    ({"SQLALCHEMY_DATABASE_URI": ""}, "DATABASE_URL"),
    ({"SECRET_KEY": "change-me-in-production"}, "SECRET_KEY"),
    ({"JWT_SECRET_KEY": "change-me-in-production"}, "JWT_SECRET_KEY"),
    ({"JWT_REFRESH_SECRET_KEY": "change-me-refresh-in-production"}, "JWT_REFRESH_SECRET_KEY"),
    ({"JWT_REFRESH_SECRET_KEY": "access-secret"}, "must differ"),
])
def test_production_guard_rejects(overrides, key):
    with pytest.raises(ValueError, match=key):
        validate_production_config(_production_app(**overrides))
