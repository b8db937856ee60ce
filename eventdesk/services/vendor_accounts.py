# eventdesk/services/vendor_accounts.py
import logging
from flask import current_app

from ..extensions import db
from ..models.user import User, Vendor
from . import notifications as kinds
from .notifications import outbox_for_app

log = logging.getLogger(__name__)


def create_vendor(user: User, name: str, email: str | None = None) -> Vendor:
    """Attach a vendor profile to ``user`` and send the welcome email after commit."""
    name = (name or "").strip()
    if not name:
        raise ValueError("vendor name is required")
    if user.vendor_profile is not None:
        raise ValueError(f"user {user.id} already has a vendor profile")

    vendor = Vendor(name=name, email=(email or user.email or "").strip().lower() or None, user=user)
    if user.role == "client":
        user.role = "vendor"
    db.session.add(vendor)
    db.session.commit()
    log.info("Vendor %s created for user %s", vendor.id, user.id)

    base = (current_app.config.get("EXTERNAL_BASE_URL") or "").rstrip("/")
    outbox = outbox_for_app(current_app._get_current_object())
    outbox.stage(kinds.VENDOR_WELCOME, {
        "vendor_id": vendor.id,
        "vendor_name": vendor.name,
        "vendor_email": vendor.email,
        "contact_name": user.name,
        "application_url": f"{base}/vendor/profile",
    })
    outbox.flush()
    return vendor
