# eventdesk/services/quote_notifications.py
import logging
from flask import current_app
from .email_service import send_email
from . import notifications as kinds

log = logging.getLogger(__name__)


def _links() -> dict:
    base = (current_app.config.get("EXTERNAL_BASE_URL") or "").rstrip("/")
    return {
        "client_quotes_url": f"{base}/quotes",
        "vendor_quotes_url": f"{base}/vendor/quotes",
    }


def email_quote_requested_vendor(p: dict) -> bool:
    if not p.get("vendor_email"):
        return False
    return send_email(
        to=p["vendor_email"],
        subject=f"New Quote Request from {p.get('client_name') or 'a potential client'}",
        template="quote_requested_vendor.html",
        p=p, **_links(),
    )


def email_quote_requested_admin(p: dict) -> bool:
    admins = current_app.config.get("ADMIN_EMAILS") or []
    if isinstance(admins, str):
        admins = [admins]
    if not admins:
        log.debug("no ADMIN_EMAILS configured; skipping %s", kinds.QUOTE_REQUESTED_ADMIN)
        return False
    return send_email(
        to=admins,
        subject=f"[Quote Request] {p.get('client_name') or 'Client'} → {p.get('vendor_name') or 'vendor'}",
        template="quote_requested_admin.html",
        p=p, **_links(),
    )


def email_quote_sent_client(p: dict, *, revised: bool) -> bool:
    if not p.get("client_email"):
        return False
    vendor = p.get("vendor_name") or "your vendor"
    subject = f"Revised Quote from {vendor}" if revised else f"Quote Received from {vendor}"
    return send_email(
        to=p["client_email"],
        subject=subject,
        template="quote_revised_client.html" if revised else "quote_created_client.html",
        p=p, **_links(),
    )


def email_quote_accepted_vendor(p: dict) -> bool:
    if not p.get("vendor_email"):
        return False
    return send_email(
        to=p["vendor_email"],
        subject=f"Quote Accepted by {p.get('client_name') or 'Client'}",
        template="quote_accepted_vendor.html",
        p=p, **_links(),
    )


def email_quote_rejected_vendor(p: dict) -> bool:
    if not p.get("vendor_email"):
        return False
    return send_email(
        to=p["vendor_email"],
        subject=f"Quote Not Accepted - {p.get('client_name') or 'Client Response'}",
        template="quote_rejected_vendor.html",
        p=p, **_links(),
    )


def email_subscription_activated_admin(p: dict) -> bool:
    admins = current_app.config.get("ADMIN_EMAILS") or []
    if isinstance(admins, str):
        admins = [admins]
    if not admins:
        return False
    return send_email(
        to=admins,
        subject=f"[Subscription] {p.get('subscriber_name') or 'Subscriber'} is now active",
        template="subscription_activated_admin.html",
        p=p,
    )


def email_vendor_welcome(p: dict) -> bool:
    if not p.get("vendor_email"):
        return False
    return send_email(
        to=p["vendor_email"],
        subject="Welcome to Funcxon - Complete Your Vendor Profile",
        template="vendor_welcome.html",
        p=p,
    )


class EmailDispatcher:
    """``notify(kind, payload)`` backed by Flask-Mail."""

    def __init__(self):
        self._handlers = {
            kinds.QUOTE_REQUESTED_VENDOR: email_quote_requested_vendor,
            kinds.QUOTE_REQUESTED_ADMIN: email_quote_requested_admin,
            kinds.QUOTE_CREATED_CLIENT: lambda p: email_quote_sent_client(p, revised=False),
            kinds.QUOTE_REVISED_CLIENT: lambda p: email_quote_sent_client(p, revised=True),
            kinds.QUOTE_ACCEPTED_VENDOR: email_quote_accepted_vendor,
            kinds.QUOTE_REJECTED_VENDOR: email_quote_rejected_vendor,
            kinds.SUBSCRIPTION_ACTIVATED_ADMIN: email_subscription_activated_admin,
            kinds.VENDOR_WELCOME: email_vendor_welcome,
        }

    def notify(self, kind: str, payload: dict) -> bool:
        handler = self._handlers.get(kind)
        if handler is None:
            log.warning("no email handler for notification %s", kind)
            return False
        sent = bool(handler(payload))
        if not sent:
            log.info("notification %s not emailed (request=%s)", kind, payload.get("quote_request_id"))
        return sent
