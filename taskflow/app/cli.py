"""Flask CLI commands for Taskflow maintenance."""

from __future__ import annotations

import logging

import click
from flask import Flask
from flask.cli import with_appcontext

from taskflow.app.extensions import db
from taskflow.app.services import token_service

LOGGER = logging.getLogger(__name__)


@click.command("purge-refresh-tokens")
@with_appcontext
def purge_refresh_tokens_command() -> None:
    """Delete every refresh token whose expiry has passed."""
    count = token_service.purge_expired_refresh_tokens(db.session)
    db.session.commit()
    LOGGER.info("purge-refresh-tokens removed %s rows", count)
    click.echo(f"Purged {count} expired refresh token(s).")


def init_app(app: Flask) -> None:
    """Register application-specific CLI commands."""
    app.cli.add_command(purge_refresh_tokens_command)
