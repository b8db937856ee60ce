# eventdesk/cli.py
import click
from flask.cli import AppGroup

from .services.billing_notifications import send_subscription_reminders

subscriptions_cli = AppGroup("subscriptions", help="Listing subscription jobs.")


@subscriptions_cli.command("remind")
def remind():
    """Send 5-day and 1-day renewal reminders (run daily from cron)."""
    results = send_subscription_reminders()
    for name, counts in results.items():
        click.echo(f"{name}: {counts['sent']} sent, {counts['failed']} failed")
