"""
End-to-end tests for the JSON API.
"""

from eventdesk.extensions import db
from eventdesk.models.quote import QuoteRequest, QuoteRevision, RequestStatus, RevisionStatus
from eventdesk.services.payment_service import verify_signature

from conftest import PASSPHRASE


def _send(http, bearer, vendor_user, request_id, **fields):
    body = {"amount": 5000, "description": "Venue package"}
    body.update(fields)
    return http.post(f"/vendor/quotes/{request_id}/send", json=body, headers=bearer(vendor_user))


class TestAuth:
    def test_anonymous(self, http):
        resp = http.get("/quotes")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "unauthorized"

    def test_unknown_token(self, http):
        resp = http.get("/quotes", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_client_cannot_use_vendor_routes(self, http, bearer, client_user):
        assert http.get("/vendor/quotes", headers=bearer(client_user)).status_code == 403

    def test_index(self, http):
        assert http.get("/").get_json()["service"] == "eventdesk"


class TestClientRoutes:
    def test_create_request(self, http, bearer, dispatcher, client_user, vendor):
        resp = http.post("/quotes", json={
            "vendor_id": vendor.id,
            "details": "Year-end function, 80 guests",
            "event_date": "2025-12-05",
        }, headers=bearer(client_user))
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["status"] == "pending"
        assert data["name"] == "Thandi Mokoena"
        assert data["email"] == "thandi@example.com"
        assert dispatcher.kinds() == ["quote-requested-vendor", "quote-requested-admin"]

    def test_create_request_needs_vendor(self, http, bearer, client_user):
        resp = http.post("/quotes", json={"details": "x"}, headers=bearer(client_user))
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "vendor_id"

    def test_create_request_unknown_vendor(self, http, bearer, client_user):
        resp = http.post("/quotes", json={"vendor_id": 404}, headers=bearer(client_user))
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "not_found"

    def test_list_and_history(self, http, bearer, client_user, vendor_user, quote_request):
        _send(http, bearer, vendor_user, quote_request.id)

        listing = http.get("/quotes", headers=bearer(client_user)).get_json()
        assert [r["id"] for r in listing["quote_requests"]] == [quote_request.id]
        assert listing["quote_requests"][0]["status"] == "quoted"

        history = http.get(f"/quotes/{quote_request.id}", headers=bearer(client_user)).get_json()
        assert history["revisions"][0]["status"] == "sent"
        assert history["revisions"][0]["expired"] is False
        assert history["vendor"]["name"] == "Sunset Venues"

    def test_reject_without_feedback(self, http, bearer, client_user, vendor_user, quote_request):
        rev_id = _send(http, bearer, vendor_user, quote_request.id).get_json()["revision"]["id"]

        resp = http.post(f"/quotes/revisions/{rev_id}/respond",
                         json={"decision": "reject"}, headers=bearer(client_user))
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["field"] == "feedback"
        assert body["message"] == "feedback required to reject"

        rev = db.session.get(QuoteRevision, rev_id)
        db.session.refresh(rev)
        assert rev.status == RevisionStatus.SENT

    def test_reject_then_answer_again(self, http, bearer, dispatcher, client_user, vendor_user, quote_request):
        rev_id = _send(http, bearer, vendor_user, quote_request.id).get_json()["revision"]["id"]

        resp = http.post(f"/quotes/revisions/{rev_id}/respond",
                         json={"decision": "reject", "feedback": "too expensive"},
                         headers=bearer(client_user))
        assert resp.status_code == 200
        assert resp.get_json()["revision"]["status"] == "rejected"
        assert resp.get_json()["revision"]["client_notes"] == "too expensive"

        again = http.post(f"/quotes/revisions/{rev_id}/respond",
                          json={"decision": "accept"}, headers=bearer(client_user))
        assert again.status_code == 409
        assert again.get_json()["reason"] == "already-responded"
        assert dispatcher.kinds() == ["quote-created-client", "quote-rejected-vendor"]

    def test_vendor_cannot_answer_own_quote(self, http, bearer, vendor_user, quote_request):
        rev_id = _send(http, bearer, vendor_user, quote_request.id).get_json()["revision"]["id"]
        resp = http.post(f"/quotes/revisions/{rev_id}/respond",
                         json={"decision": "accept"}, headers=bearer(vendor_user))
        assert resp.status_code == 403

    def test_non_string_decision(self, http, bearer, client_user, vendor_user, quote_request):
        rev_id = _send(http, bearer, vendor_user, quote_request.id).get_json()["revision"]["id"]
        for decision in (1, None, ["accept"]):
            resp = http.post(f"/quotes/revisions/{rev_id}/respond",
                             json={"decision": decision}, headers=bearer(client_user))
            assert resp.status_code == 400
            assert resp.get_json()["field"] == "decision"

    def test_numeric_feedback_is_kept_as_text(self, http, bearer, client_user, vendor_user, quote_request):
        rev_id = _send(http, bearer, vendor_user, quote_request.id).get_json()["revision"]["id"]
        resp = http.post(f"/quotes/revisions/{rev_id}/respond",
                         json={"decision": "reject", "feedback": 5}, headers=bearer(client_user))
        assert resp.status_code == 200
        assert resp.get_json()["revision"]["client_notes"] == "5"

    def test_form_encoded_response(self, http, bearer, client_user, vendor_user, quote_request):
        rev_id = _send(http, bearer, vendor_user, quote_request.id).get_json()["revision"]["id"]
        resp = http.post(f"/quotes/revisions/{rev_id}/respond",
                         data={"decision": "accept"}, headers=bearer(client_user))
        assert resp.status_code == 200
        req = db.session.get(QuoteRequest, quote_request.id)
        db.session.refresh(req)
        assert req.status == RequestStatus.FINALISED


class TestVendorRoutes:
    def test_inbox(self, http, bearer, vendor_user, quote_request):
        resp = http.get("/vendor/quotes", headers=bearer(vendor_user))
        assert resp.status_code == 200
        assert [r["id"] for r in resp.get_json()["quote_requests"]] == [quote_request.id]

    def test_send(self, http, bearer, dispatcher, vendor_user, quote_request):
        resp = _send(http, bearer, vendor_user, quote_request.id, internal_notes="floor is 4k")
        assert resp.status_code == 201
        rev = resp.get_json()["revision"]
        assert rev["revision_number"] == 1
        assert rev["status"] == "sent"
        assert rev["notes"] == "floor is 4k"
        assert dispatcher.kinds() == ["quote-created-client"]

    def test_send_validation(self, http, bearer, vendor_user, quote_request):
        resp = _send(http, bearer, vendor_user, quote_request.id, amount=-5)
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "amount"

    def test_other_vendor_forbidden(self, http, bearer, other_vendor, quote_request):
        resp = _send(http, bearer, other_vendor.user, quote_request.id)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "forbidden"
        assert http.get(f"/vendor/quotes/{quote_request.id}",
                        headers=bearer(other_vendor.user)).status_code == 403

    def test_draft_lifecycle(self, http, bearer, vendor_user, quote_request):
        url = f"/vendor/quotes/{quote_request.id}/draft"
        saved = http.post(url, json={"amount": 3000, "internal_notes": "check bar"}, headers=bearer(vendor_user))
        assert saved.status_code == 200
        assert saved.get_json()["revision"]["status"] == "draft"

        history = http.get(f"/vendor/quotes/{quote_request.id}", headers=bearer(vendor_user)).get_json()
        assert history["revisions"][0]["notes"] == "check bar"

        assert http.delete(url, headers=bearer(vendor_user)).status_code == 204
        gone = http.delete(url, headers=bearer(vendor_user))
        assert gone.status_code == 409
        assert gone.get_json()["reason"] == "not-active"

    def test_draft_while_awaiting_response(self, http, bearer, vendor_user, quote_request):
        _send(http, bearer, vendor_user, quote_request.id)
        resp = http.post(f"/vendor/quotes/{quote_request.id}/draft",
                         json={"amount": 4000}, headers=bearer(vendor_user))
        assert resp.status_code == 409
        assert resp.get_json()["reason"] == "awaiting-response"

    def test_missing_request(self, http, bearer, vendor_user):
        assert _send(http, bearer, vendor_user, 9999).status_code == 404


class TestSubscriptionCheckout:
    def test_checkout(self, http, bearer, vendor_user, vendor):
        resp = http.post("/vendor/subscription/checkout", json={"frequency": "monthly"}, headers=bearer(vendor_user))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["process_url"] == "https://sandbox.payfast.co.za/eng/process"

        fields = body["fields"]
        assert fields["amount"] == "299.00"
        assert fields["frequency"] == "3"
        assert fields["m_payment_id"].startswith(f"VND{vendor.id}-")
        assert verify_signature(fields, PASSPHRASE)

        db.session.refresh(vendor)
        assert vendor.pending_payment_id == fields["m_payment_id"]
        assert vendor.subscription_status == "pending"
        assert vendor.billing_period == "monthly"

    def test_bad_frequency(self, http, bearer, vendor_user):
        resp = http.post("/vendor/subscription/checkout", json={"frequency": "weekly"}, headers=bearer(vendor_user))
        assert resp.status_code == 400

    def test_payments_unconfigured(self, app, http, bearer, vendor_user):
        app.config["PAYFAST_MERCHANT_ID"] = ""
        resp = http.post("/vendor/subscription/checkout", json={}, headers=bearer(vendor_user))
        assert resp.status_code == 503
