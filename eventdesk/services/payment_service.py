# eventdesk/services/payment_service.py
"""PayFast helpers: signatures, checkout form data, ITN validation, activation.

Signature construction follows PayFast's published recipe: every field except
``signature`` with a non-empty value, sorted by key, ``quote_plus``-encoded as
``key=value`` and joined with ``&``; the passphrase (when configured) is
appended as a final ``passphrase=`` pair; the signature is the MD5 hex digest
of that string.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from datetime import datetime
from urllib.parse import quote_plus

import requests
from flask import current_app

from ..extensions import db
from ..models.user import Vendor, Venue

log = logging.getLogger(__name__)

SUBSCRIBER_MODELS = (("venue", Venue), ("vendor", Vendor))

# PayFast frequency codes for recurring billing
FREQUENCIES = {"monthly": "3", "quarterly": "4", "biannually": "5", "annually": "6"}


def _base_urls():
    if current_app.config.get("PAYFAST_SANDBOX", True):
        return (
            "https://sandbox.payfast.co.za/eng/process",
            "https://sandbox.payfast.co.za/eng/query/validate",
        )
    return ("https://www.payfast.co.za/eng/process", "https://www.payfast.co.za/eng/query/validate")


def process_url() -> str:
    return _base_urls()[0]


def build_signature_payload(params: dict, passphrase: str | None = None) -> str:
    parts = []
    for key in sorted(k for k in params if k != "signature"):
        value = params[key]
        if value is None or str(value) == "":
            continue
        parts.append(f"{quote_plus(str(key))}={quote_plus(str(value))}")
    payload = "&".join(parts)
    if passphrase:
        payload += f"&passphrase={quote_plus(passphrase)}"
    return payload


def generate_signature(params: dict, passphrase: str | None = None) -> str:
    payload = build_signature_payload(params, passphrase)
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def verify_signature(params: dict, passphrase: str | None = None) -> bool:
    supplied = (params.get("signature") or "").strip().lower()
    if not supplied:
        return False
    return hmac.compare_digest(generate_signature(params, passphrase), supplied)


def build_checkout_data(*, amount: float, item_name: str, payment_id: str | None = None,
                        item_description: str = "", first_name: str = "", last_name: str = "",
                        email: str = "", phone: str = "", frequency: str | None = None,
                        recurring_amount: float | None = None, cycles: int | None = None) -> dict:
    """Form fields for the PayFast process page, signed with the configured passphrase."""
    cfg = current_app.config
    data = {
        "merchant_id": cfg.get("PAYFAST_MERCHANT_ID") or "",
        "merchant_key": cfg.get("PAYFAST_MERCHANT_KEY") or "",
        "return_url": cfg.get("PAYFAST_RETURN_URL") or "",
        "cancel_url": cfg.get("PAYFAST_CANCEL_URL") or "",
        "notify_url": cfg.get("PAYFAST_NOTIFY_URL") or "",
        "name_first": first_name,
        "name_last": last_name,
        "email_address": email,
        "cell_number": phone,
        "m_payment_id": payment_id or "",
        "amount": f"{float(amount):.2f}",
        "item_name": (item_name or "")[:100],
        "item_description": (item_description or "")[:255],
    }
    if frequency:
        data["subscription_type"] = "1"
        data["billing_date"] = datetime.utcnow().date().isoformat()
        data["recurring_amount"] = f"{float(recurring_amount if recurring_amount is not None else amount):.2f}"
        data["frequency"] = FREQUENCIES.get(frequency, frequency)
        data["cycles"] = str(cycles if cycles is not None else 0)  # 0 = until cancelled

    data = {k: v for k, v in data.items() if v != ""}
    data["signature"] = generate_signature(data, cfg.get("PAYFAST_PASSPHRASE"))
    return data


def new_payment_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:20]}"


def validate_with_gateway(params: dict) -> bool:
    """Ask PayFast to confirm the ITN data it sent us (server-to-server)."""
    _, validate_url = _base_urls()
    body = build_signature_payload(params)
    try:
        r = requests.post(
            validate_url,
            data=body,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=20,
        )
        r.raise_for_status()
    except requests.RequestException as e:
        log.error("PayFast validate call failed: %s", e)
        return False
    ok = r.text.strip() == "VALID"
    if not ok:
        log.warning("PayFast validate answered %r", r.text[:50])
    return ok


def activate_subscription(m_payment_id: str, pf_payment_id: str | None = None) -> list:
    """Activate every venue/vendor waiting on this payment id. Commits."""
    now = datetime.utcnow()
    activated = []
    for kind, model in SUBSCRIBER_MODELS:
        row = model.query.filter_by(pending_payment_id=m_payment_id).first()
        if row is None:
            continue
        row.activate_subscription(pf_payment_id, when=now)
        activated.append((kind, row))
        log.info("PayFast: %s %s subscription active (m_payment_id=%s)", kind, row.id, m_payment_id)

    if activated:
        db.session.commit()
    else:
        log.warning("PayFast ITN: no venue/vendor matched pending_payment_id %s", m_payment_id)
    return activated
