"""
`flask housekeeping ...` commands.

The service owns no timers; cron (or any scheduler) runs these on a cadence:

    flask --app api housekeeping sweep            # hourly
    flask --app api housekeeping stats            # daily
    flask --app api housekeeping password-expiry  # daily
    flask --app api housekeeping status-sync      # daily
"""
import json

import click
from flask.cli import AppGroup

from utils.decorators import components

cli = AppGroup("housekeeping", help="Periodic maintenance jobs.")


@cli.command("sweep")
def sweep():
    """Delete expired sessions and refresh tokens."""
    click.echo(json.dumps(components().housekeeper.sweep_expired()))


@cli.command("stats")
def stats():
    """Publish a statistics snapshot."""
    click.echo(json.dumps(components().housekeeper.generate_statistics()))


@cli.command("password-expiry")
def password_expiry():
    """Warn users whose password is older than PASSWORD_MAX_AGE_DAYS."""
    warned = components().housekeeper.check_password_expiry()
    click.echo(json.dumps({"warned": len(warned)}))


@cli.command("status-sync")
def status_sync():
    """Re-announce inactive users."""
    synced = components().housekeeper.sync_user_status()
    click.echo(json.dumps({"synced": len(synced)}))
