# eventdesk/blueprints/payfast_itn.py
import logging
from flask import Blueprint, current_app, request

from ..services import notifications as kinds
from ..services.notifications import outbox_for_app
from ..services.payment_service import activate_subscription, validate_with_gateway, verify_signature

log = logging.getLogger(__name__)

payfast_itn_bp = Blueprint("payfast_itn", __name__, url_prefix="/itn/payfast")


def _notify_admins(activated, params: dict):
    app = current_app._get_current_object()
    outbox = outbox_for_app(app)
    for kind, row in activated:
        outbox.stage(kinds.SUBSCRIPTION_ACTIVATED_ADMIN, {
            "subscriber_type": kind,
            "subscriber_id": row.id,
            "subscriber_name": row.name,
            "pf_payment_id": params.get("pf_payment_id"),
            "amount_gross": params.get("amount_gross"),
        })
    outbox.flush()


@payfast_itn_bp.route("", methods=["POST"])
def itn():
    # PayFast posts application/x-www-form-urlencoded
    cfg = current_app.config
    merchant_id = cfg.get("PAYFAST_MERCHANT_ID")
    if not merchant_id:
        log.error("PayFast ITN received but PAYFAST_MERCHANT_ID is not configured")
        return "Server misconfigured", 500

    params = request.form.to_dict()
    payment_status = params.get("payment_status")
    m_payment_id = params.get("m_payment_id")
    if not payment_status or not m_payment_id or not params.get("signature"):
        return "Bad Request", 400

    if params.get("merchant_id") and params["merchant_id"] != merchant_id:
        log.warning("PayFast ITN for another merchant (%s)", params["merchant_id"])
        return "Bad Request", 400

    if not verify_signature(params, cfg.get("PAYFAST_PASSPHRASE")):
        log.error("PayFast ITN signature mismatch m_payment_id=%s", m_payment_id)
        return "Invalid signature", 400

    if cfg.get("PAYFAST_VALIDATE_REMOTE") and not validate_with_gateway(params):
        return "Invalid notification", 400

    # Only activate on COMPLETE
    if payment_status != "COMPLETE":
        log.info("PayFast ITN m_payment_id=%s status=%s (no change)", m_payment_id, payment_status)
        return "OK", 200

    activated = activate_subscription(m_payment_id, params.get("pf_payment_id"))
    if activated:
        _notify_admins(activated, params)
    return "OK", 200
