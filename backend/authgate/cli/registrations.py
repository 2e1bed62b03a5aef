"""Flask CLI commands for staged-registration housekeeping."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import SQLAlchemyError

from authgate.api.deps import build_registration_service

LOGGER = logging.getLogger(__name__)


def _parse_instant(value: str | None) -> datetime | None:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise click.BadParameter(f"Not an ISO-8601 datetime: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@click.group("registrations")
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
def registrations_cli(verbose: bool) -> None:
    """Manage registrations awaiting email confirmation."""
    LOGGER.setLevel(logging.DEBUG if verbose else logging.INFO)


@registrations_cli.command("purge")
@click.option(
    "--now",
    "now_value",
    default=None,
    help="Reference instant (ISO-8601, default: current UTC time).",
)
@with_appcontext
def purge_command(now_value: str | None) -> None:
    """Delete expired registrations that were never confirmed."""
    now = _parse_instant(now_value)
    try:
        deleted = build_registration_service().purge_expired(now)
    except SQLAlchemyError as exc:
        raise click.ClickException(f"Purge failed: {exc.__class__.__name__}") from exc
    click.echo(f"Purged {deleted} expired registration(s).")
