# eventdesk/blueprints/quotes/routes.py
from flask import request, jsonify
from flask_login import login_required, current_user

from . import quotes_bp
from ...errors import ValidationError
from ...models.quote import QuoteRevision
from ...services.quote_engine import build_engine


# -----------------
# Helpers
# -----------------

def _payload() -> dict:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _int_field(data: dict, key: str) -> int:
    try:
        return int(data.get(key))
    except (TypeError, ValueError):
        raise ValidationError(key, f"{key} must be an id") from None


# -----------------
# Requests (client side)
# -----------------

@quotes_bp.post("")
@login_required
def request_create():
    data = _payload()
    vendor_id = _int_field(data, "vendor_id")
    # prefill contact details from the account, like the request form does
    data.setdefault("name", current_user.name)
    data.setdefault("email", current_user.email)

    req = build_engine().create_quote_request(current_user.id, vendor_id, data)
    return jsonify(req.to_dict()), 201


@quotes_bp.get("")
@login_required
def request_list():
    rows = build_engine().requests_for_client(current_user.id)
    return jsonify({"quote_requests": [r.to_dict() for r in rows]})


@quotes_bp.get("/<int:request_id>")
@login_required
def request_history(request_id):
    return jsonify(build_engine().quote_history(request_id, current_user.id))


# -----------------
# Revisions → Accept / Reject
# -----------------

@quotes_bp.post("/revisions/<int:revision_id>/respond")
@login_required
def revision_respond(revision_id):
    data = _payload()
    engine = build_engine()
    engine.respond_to_quote(
        revision_id,
        current_user.id,
        data.get("decision"),
        data.get("feedback"),
    )
    rev = engine.store.get(QuoteRevision, revision_id)
    return jsonify({"ok": True, "revision": rev.to_dict()})
