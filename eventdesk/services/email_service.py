# eventdesk/services/email_service.py
import logging
from flask import current_app, render_template
from flask_mail import Message
from jinja2 import TemplateNotFound
from ..extensions import mail

log = logging.getLogger(__name__)


def _render(template: str, ctx: dict):
    """HTML body plus the plain-text twin (``foo.html`` -> ``foo.txt``) if one exists."""
    html = render_template(f"email/{template}", **ctx)
    stem = template.rsplit(".", 1)[0]
    try:
        text = render_template(f"email/{stem}.txt", **ctx)
    except TemplateNotFound:
        text = None
    return html, text


def _sender():
    cfg = current_app.config
    address = cfg.get("MAIL_DEFAULT_SENDER") or cfg.get("MAIL_USERNAME")
    if not address:
        return None
    name = cfg.get("MAIL_DEFAULT_SENDER_NAME")
    return (name, address) if name else address


def send_email(*, to, subject, template, **ctx) -> bool:
    """Render email/<template> and send it through Flask-Mail.

    Never raises: a mail problem must not undo whatever triggered the email,
    so failures are logged and reported as ``False``.
    """
    recipients = [to] if isinstance(to, str) else [r for r in (to or []) if r]
    if not recipients:
        log.warning("send_email: no recipient for %r", subject)
        return False

    try:
        sender = _sender()
        if sender is None:
            log.error("send_email: MAIL_DEFAULT_SENDER is not configured")
            return False

        html, text = _render(template, ctx)
        msg = Message(subject=subject, recipients=recipients, sender=sender, html=html, body=text)

        if current_app.config.get("MAIL_SUPPRESS_SEND"):
            log.info("[MAIL_SUPPRESS_SEND] %s -> %s", subject, ", ".join(recipients))
            return True

        mail.send(msg)
    except Exception:
        log.exception("send_email failed: %s -> %s", subject, recipients)
        return False

    log.info("Email sent: %s -> %s", subject, ", ".join(recipients))
    return True
