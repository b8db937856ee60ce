# eventdesk/services/billing_notifications.py
"""Renewal reminders for vendor listing subscriptions.

Two reminders per billing period: one when the subscription is at most five
days from expiry and a final one at most a day out. Each is sent once; the
flag is cleared again when the next payment extends the subscription.
"""
import logging
from datetime import datetime, timedelta
from flask import current_app

from ..extensions import db
from ..models.user import Vendor
from .email_service import send_email

log = logging.getLogger(__name__)

# name, days left shown in the email, expiry window (days from now), sent flag
REMINDERS = (
    ("one_day", 1, (0, 1), "reminder_1day_sent"),
    ("five_day", 5, (1, 5), "reminder_5day_sent"),
)


def _billing_url() -> str:
    base = (current_app.config.get("EXTERNAL_BASE_URL") or "").rstrip("/")
    return current_app.config.get("BILLING_URL") or f"{base}/app/billing"


def email_subscription_reminder(vendor: Vendor, days_left: int) -> bool:
    to = vendor.email or (vendor.user.email if vendor.user else None)
    if not to:
        return False
    if days_left <= 1:
        subject = "Your Funcxon subscription expires tomorrow - Renew now"
    else:
        subject = f"Reminder: Your Funcxon subscription expires in {days_left} days"
    return bool(send_email(
        to=to,
        subject=subject,
        template="subscription_reminder.html",
        vendor=vendor,
        days_left=days_left,
        amount=current_app.config.get("SUBSCRIPTION_AMOUNT"),
        billing_url=_billing_url(),
    ))


def vendors_due(flag: str, window: tuple, now: datetime) -> list:
    lower, upper = window
    return (
        Vendor.query
        .filter(
            Vendor.subscription_status == "active",
            Vendor.subscription_expires_at > now + timedelta(days=lower),
            Vendor.subscription_expires_at <= now + timedelta(days=upper),
            getattr(Vendor, flag).is_(False),
        )
        .order_by(Vendor.subscription_expires_at.asc())
        .all()
    )


def send_subscription_reminders(now: datetime | None = None) -> dict:
    """Email every vendor with a reminder due; returns sent/failed counts per reminder."""
    now = now or datetime.utcnow()
    results = {}
    for name, days_left, window, flag in REMINDERS:
        counts = {"sent": 0, "failed": 0}
        for vendor in vendors_due(flag, window, now):
            if email_subscription_reminder(vendor, days_left):
                setattr(vendor, flag, True)
                counts["sent"] += 1
            else:
                counts["failed"] += 1
                log.warning("%s reminder not sent to vendor %s", name, vendor.id)
        results[name] = counts
    db.session.commit()
    log.info("Subscription reminders: %s", results)
    return results
