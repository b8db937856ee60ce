# eventdesk/services/quote_engine.py
"""Quote negotiation: requests, drafted/sent revisions and client responses.

Lifecycle
---------
QuoteRequest:  pending -> quoted -> finalised | rejected   (rejected -> quoted on re-quote)
QuoteRevision: draft -> sent -> accepted | rejected        (sent -> superseded when re-quoted)

At most one revision per request is ``draft`` or ``sent`` at any time. Every
write that depends on the current status is issued as a conditional update, so
of two concurrent transitions on the same revision exactly one wins and the
other gets ``InvalidStateError``. Notifications are staged while the
transition runs and released only after the commit.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from ..models.quote import QuoteComment, QuoteRequest, QuoteRevision, RequestStatus, RevisionStatus
from ..models.user import Vendor
from . import notifications as kinds
from .notifications import NotificationOutbox, outbox_for_app
from .quote_store import QuoteStore

log = logging.getLogger(__name__)

DEFAULT_VALIDITY_DAYS = 7
MAX_VALIDITY_DAYS = 365
# Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")
CENTS = Decimal("0.01")
LIST_LIMIT = 50

# decision -> (revision status, request status, vendor notification)
DECISIONS = {
    "accept": (RevisionStatus.ACCEPTED, RequestStatus.FINALISED, kinds.QUOTE_ACCEPTED_VENDOR),
    "reject": (RevisionStatus.REJECTED, RequestStatus.REJECTED, kinds.QUOTE_REJECTED_VENDOR),
}


# -----------------
# Derived values
# -----------------

def expires_at(revision: QuoteRevision) -> datetime | None:
    """``created_at + validity_days``; a promoted draft keeps its draft-time ``created_at``."""
    if revision.created_at is None:
        return None
    return revision.created_at + timedelta(days=revision.validity_days or DEFAULT_VALIDITY_DAYS)


def is_expired(revision: QuoteRevision, now: datetime | None = None) -> bool:
    """Only sent revisions expire; the expiry instant itself still counts as valid."""
    if revision.status != RevisionStatus.SENT:
        return False
    expiry = expires_at(revision)
    if expiry is None:
        return False
    return (now or datetime.utcnow()) > expiry


# -----------------
# Input parsing
# -----------------

def _text(fields: dict, key: str) -> str | None:
    val = fields.get(key)
    if val is None:
        return None
    val = str(val).strip()
    return val or None


def _parse_amount(raw, *, field: str = "amount", required: bool = False) -> Decimal | None:
    """Money in rands, rounded to cents; ``required`` amounts must stay above zero after rounding."""
    if raw is None or str(raw).strip() == "":
        if required:
            raise ValidationError(field, f"{field} is required")
        return None
    if isinstance(raw, bool):
        raise ValidationError(field, f"{field} must be a number")
    try:
        amount = Decimal(str(raw).replace(",", "").replace(" ", ""))
        if not amount.is_finite():
            raise InvalidOperation
        if amount.copy_abs() > MAX_AMOUNT:
            raise ValidationError(field, f"{field} cannot exceed {MAX_AMOUNT:,}")
        amount = amount.quantize(CENTS)
    except InvalidOperation:
        raise ValidationError(field, f"{field} must be a number") from None
    if amount < 0:
        raise ValidationError(field, f"{field} cannot be negative")
    if required and amount == 0:
        raise ValidationError(field, f"{field} must be greater than zero")
    return amount


def _parse_validity(raw, default: int) -> int:
    if raw is None or str(raw).strip() == "":
        return default
    if isinstance(raw, bool):
        raise ValidationError("validity_days", "validity_days must be a whole number")
    try:
        days = int(str(raw).strip())
    except ValueError:
        raise ValidationError("validity_days", "validity_days must be a whole number") from None
    if not 1 <= days <= MAX_VALIDITY_DAYS:
        raise ValidationError("validity_days", f"validity_days must be between 1 and {MAX_VALIDITY_DAYS}")
    return days


def _parse_date(raw) -> date | None:
    if raw in (None, ""):
        return None
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw).strip()[:10])
    except ValueError:
        raise ValidationError("event_date", "event_date must be YYYY-MM-DD") from None


def _money(val) -> float | None:
    return float(val) if val is not None else None


# -----------------
# Engine
# -----------------

class QuoteNegotiationEngine:
    def __init__(self, store: QuoteStore, outbox: NotificationOutbox, *,
                 clock=None, default_validity_days: int = DEFAULT_VALIDITY_DAYS):
        self.store = store
        self.outbox = outbox
        self.clock = clock or datetime.utcnow
        self.default_validity_days = default_validity_days

    # ---- transaction boundary ----

    @contextmanager
    def _transition(self):
        try:
            yield
            self.store.commit()
        except IntegrityError as e:
            self.store.rollback()
            self.outbox.discard()
            log.warning("quote transition lost a race: %s", e.orig)
            raise InvalidStateError(InvalidStateError.NOT_ACTIVE, "quote changed concurrently, reload and retry") from e
        except Exception:
            self.store.rollback()
            self.outbox.discard()
            raise
        self.outbox.flush()

    # ---- lookups ----

    def _request(self, request_id) -> QuoteRequest:
        req = self.store.get(QuoteRequest, request_id)
        if req is None:
            raise NotFoundError(f"quote request {request_id} not found")
        return req

    def _owned_request(self, request_id, vendor_id) -> QuoteRequest:
        req = self._request(request_id)
        if vendor_id is None or req.vendor_id != vendor_id:
            raise AuthorizationError("quote request is not assigned to this vendor")
        return req

    @staticmethod
    def _ensure_open(req: QuoteRequest):
        if req.status == RequestStatus.FINALISED:
            raise InvalidStateError(InvalidStateError.FINALISED, "quote request is already finalised")

    def active_revision(self, request_id) -> QuoteRevision | None:
        return self.store.first(QuoteRevision, quote_request_id=request_id, status=RevisionStatus.active())

    def _sent_count(self, request_id) -> int:
        return self.store.count(QuoteRevision, quote_request_id=request_id, status=RevisionStatus.ever_sent())

    def _supersede(self, revision: QuoteRevision, now: datetime):
        ok = self.store.update_where(
            QuoteRevision, revision.id,
            {"status": RevisionStatus.SENT},
            {"status": RevisionStatus.SUPERSEDED, "updated_at": now},
        )
        if not ok:
            raise InvalidStateError(InvalidStateError.ALREADY_RESPONDED, "the outstanding quote was answered meanwhile")
        log.info("Quote revision %s superseded", revision.id)

    @staticmethod
    def _vendor_contact(vendor: Vendor | None) -> dict:
        if vendor is None:
            return {"vendor_name": None, "vendor_email": None}
        email = vendor.email or (vendor.user.email if vendor.user else None)
        return {"vendor_name": vendor.name, "vendor_email": email}

    # ---- client: request a quote ----

    def create_quote_request(self, requester_id, vendor_id, fields: dict) -> QuoteRequest:
        name = _text(fields, "name")
        if not name:
            raise ValidationError("name", "name is required")
        email = (_text(fields, "email") or "").lower()
        if not email or "@" not in email:
            raise ValidationError("email", "a valid email is required")
        budget = _parse_amount(fields.get("budget"), field="budget")
        event_date = _parse_date(fields.get("event_date"))

        vendor = self.store.get(Vendor, vendor_id)
        if vendor is None:
            raise NotFoundError(f"vendor {vendor_id} not found")

        with self._transition():
            req = QuoteRequest(
                vendor_id=vendor.id,
                requester_id=requester_id,
                name=name,
                email=email,
                status=RequestStatus.PENDING,
                details=_text(fields, "details"),
                event_type=_text(fields, "event_type"),
                event_date=event_date,
                budget=budget,
                created_at=self.clock(),
            )
            self.store.insert(req)
            payload = {
                "quote_request_id": req.id,
                "client_name": name,
                "client_email": email,
                "event_details": req.details,
                "event_date": event_date.isoformat() if event_date else None,
                **self._vendor_contact(vendor),
            }
            self.outbox.stage(kinds.QUOTE_REQUESTED_VENDOR, payload)
            self.outbox.stage(kinds.QUOTE_REQUESTED_ADMIN, payload)

        log.info("Quote request %s created for vendor %s", req.id, vendor.id)
        return req

    # ---- vendor: drafts ----

    def _draft_values(self, fields: dict) -> dict:
        """Columns for the fields actually supplied; ``None`` means "leave as is"."""
        supplied = {k: v for k, v in fields.items() if v is not None}
        values = {}
        if "amount" in supplied:
            values["quote_amount"] = _parse_amount(supplied["amount"])
        for key, column in (("description", "description"), ("terms", "terms"), ("internal_notes", "notes")):
            if key in supplied:
                values[column] = _text(supplied, key)
        if "validity_days" in supplied:
            values["validity_days"] = _parse_validity(supplied["validity_days"], self.default_validity_days)
        return values

    def create_or_update_draft(self, request_id, vendor_id, fields: dict) -> int:
        """Save the vendor's working draft.

        Saving merges into an existing draft: omitted (or ``None``) fields keep
        their stored value and an empty string clears one. A new draft starts
        from the default validity period.
        """
        with self._transition():
            req = self._owned_request(request_id, vendor_id)
            self._ensure_open(req)
            now = self.clock()
            values = self._draft_values(fields)
            values["updated_at"] = now

            active = self.active_revision(req.id)
            if active is not None and active.status == RevisionStatus.SENT:
                if not is_expired(active, now):
                    raise InvalidStateError(
                        InvalidStateError.AWAITING_RESPONSE,
                        "the sent quote is still awaiting the client's response",
                    )
                self._supersede(active, now)
                active = None

            if active is not None:
                if not self.store.update_where(QuoteRevision, active.id, {"status": RevisionStatus.DRAFT}, values):
                    raise InvalidStateError(InvalidStateError.NOT_ACTIVE, "draft was sent or discarded meanwhile")
                revision_id = active.id
            else:
                rev = QuoteRevision(
                    quote_request_id=req.id,
                    vendor_id=vendor_id,
                    status=RevisionStatus.DRAFT,
                    revision_number=self._sent_count(req.id) + 1,
                    created_at=now,
                    **{"validity_days": self.default_validity_days, **values},
                )
                self.store.insert(rev)
                revision_id = rev.id

        log.info("Draft revision %s saved for request %s", revision_id, request_id)
        return revision_id

    def discard_draft(self, request_id, vendor_id) -> None:
        with self._transition():
            req = self._owned_request(request_id, vendor_id)
            active = self.active_revision(req.id)
            if active is None or active.status != RevisionStatus.DRAFT:
                raise InvalidStateError(InvalidStateError.NOT_ACTIVE, "there is no draft to discard")
            self.store.delete(active)
        log.info("Draft discarded for request %s", request_id)

    # ---- vendor: send ----

    def send_quote(self, request_id, vendor_id, fields: dict) -> int:
        with self._transition():
            req = self._owned_request(request_id, vendor_id)
            amount = _parse_amount(fields.get("amount"), required=True)
            description = _text(fields, "description")
            if not description:
                raise ValidationError("description", "description is required")
            self._ensure_open(req)

            now = self.clock()
            active = self.active_revision(req.id)
            active_status = active.status if active is not None else None
            if active_status == RevisionStatus.SENT:
                self._supersede(active, now)

            revision_number = self._sent_count(req.id) + 1
            values = {
                "quote_amount": amount,
                "description": description,
                "terms": _text(fields, "terms"),
                "validity_days": _parse_validity(fields.get("validity_days"), self.default_validity_days),
                "notes": _text(fields, "internal_notes"),
                "status": RevisionStatus.SENT,
                "revision_number": revision_number,
                "sent_at": now,
                "updated_at": now,
            }

            if active_status == RevisionStatus.DRAFT:
                if not self.store.update_where(QuoteRevision, active.id, {"status": RevisionStatus.DRAFT}, values):
                    raise InvalidStateError(InvalidStateError.NOT_ACTIVE, "draft was sent or discarded meanwhile")
                revision_id = active.id
            else:
                rev = QuoteRevision(quote_request_id=req.id, vendor_id=vendor_id, created_at=now, **values)
                self.store.insert(rev)
                revision_id = rev.id

            open_statuses = (RequestStatus.PENDING, RequestStatus.QUOTED, RequestStatus.REJECTED)
            if not self.store.update_where(
                QuoteRequest, req.id, {"status": open_statuses},
                {"status": RequestStatus.QUOTED, "quote_amount": amount},
            ):
                raise InvalidStateError(InvalidStateError.FINALISED, "quote request is already finalised")

            kind = kinds.QUOTE_CREATED_CLIENT if revision_number == 1 else kinds.QUOTE_REVISED_CLIENT
            self.outbox.stage(kind, {
                "quote_request_id": req.id,
                "quote_revision_id": revision_id,
                "revision_number": revision_number,
                "quote_amount": _money(amount),
                "quote_description": description,
                "client_name": req.name,
                "client_email": req.email,
                **self._vendor_contact(req.vendor),
            })

        log.info("Quote revision %s (#%s) sent for request %s", revision_id, revision_number, request_id)
        return revision_id

    # ---- client: respond ----

    def respond_to_quote(self, revision_id, responder_id, decision: str, feedback: str | None = None) -> None:
        decision = str(decision if decision is not None else "").strip().lower()
        if decision not in DECISIONS:
            raise ValidationError("decision", "decision must be 'accept' or 'reject'")
        feedback = str(feedback).strip() if feedback is not None else ""
        revision_status, request_status, kind = DECISIONS[decision]

        with self._transition():
            rev = self.store.get(QuoteRevision, revision_id)
            if rev is None:
                raise NotFoundError(f"quote revision {revision_id} not found")
            req = self._request(rev.quote_request_id)
            if responder_id is None or req.requester_id != responder_id:
                raise AuthorizationError("only the requester can respond to this quote")

            now = self.clock()
            if rev.status in (RevisionStatus.ACCEPTED, RevisionStatus.REJECTED):
                raise InvalidStateError(InvalidStateError.ALREADY_RESPONDED, "this quote was already answered")
            if rev.status != RevisionStatus.SENT:
                raise InvalidStateError(InvalidStateError.NOT_ACTIVE, "this quote is no longer open")
            if is_expired(rev, now):
                raise InvalidStateError(InvalidStateError.EXPIRED, "this quote has expired")
            if decision == "reject" and not feedback:
                raise ValidationError("feedback", "feedback required to reject")

            if not self.store.update_where(
                QuoteRevision, rev.id, {"status": RevisionStatus.SENT},
                {"status": revision_status, "responded_at": now, "client_notes": feedback or None, "updated_at": now},
            ):
                raise InvalidStateError(InvalidStateError.ALREADY_RESPONDED, "this quote was already answered")
            req.status = request_status

            if feedback:
                self.store.insert(QuoteComment(
                    quote_revision_id=rev.id,
                    author_id=responder_id,
                    author_type="client",
                    message=feedback,
                    is_internal=False,
                    created_at=now,
                ))

            self.outbox.stage(kind, {
                "quote_request_id": req.id,
                "quote_revision_id": rev.id,
                "revision_number": rev.revision_number,
                "quote_amount": _money(rev.quote_amount),
                "client_notes": feedback or None,
                "client_name": req.name,
                "client_email": req.email,
                **self._vendor_contact(req.vendor),
            })

        log.info("Quote revision %s %sed by user %s", revision_id, decision, responder_id)

    # ---- reads ----

    def quote_history(self, request_id, viewer_id) -> dict:
        req = self._request(request_id)
        vendor = req.vendor
        is_vendor = vendor is not None and vendor.user_id is not None and vendor.user_id == viewer_id
        is_client = req.requester_id is not None and req.requester_id == viewer_id
        if not (is_vendor or is_client):
            raise AuthorizationError("not a party to this quote request")

        revisions = self.store.find(
            QuoteRevision, quote_request_id=req.id, order_by=QuoteRevision.revision_number.desc()
        )
        if not is_vendor:
            revisions = [r for r in revisions if r.status != RevisionStatus.DRAFT]

        by_revision: dict[int, list] = {r.id: [] for r in revisions}
        if by_revision:
            comments = self.store.find(
                QuoteComment, quote_revision_id=list(by_revision), order_by=QuoteComment.created_at.asc()
            )
            for c in comments:
                if c.is_internal and not is_vendor:
                    continue
                by_revision[c.quote_revision_id].append(c.to_dict())

        now = self.clock()
        items = []
        for r in revisions:
            item = r.to_dict(include_internal=is_vendor)
            expiry = expires_at(r)
            item["expires_at"] = expiry.isoformat() if expiry else None
            item["expired"] = is_expired(r, now)
            item["comments"] = by_revision[r.id]
            items.append(item)

        active = next((r for r in revisions if r.is_active), None)
        return {
            "request": req.to_dict(),
            "vendor": vendor.to_dict() if vendor else None,
            "active_revision_id": active.id if active else None,
            "revisions": items,
        }

    def requests_for_client(self, user_id) -> list[QuoteRequest]:
        return self.store.find(QuoteRequest, requester_id=user_id, order_by=QuoteRequest.id.desc(), limit=LIST_LIMIT)

    def requests_for_vendor(self, vendor_id) -> list[QuoteRequest]:
        return self.store.find(QuoteRequest, vendor_id=vendor_id, order_by=QuoteRequest.id.desc(), limit=LIST_LIMIT)


def build_engine() -> QuoteNegotiationEngine:
    """Engine wired to the current app's session, dispatcher and worker pool."""
    app = current_app._get_current_object()
    outbox = outbox_for_app(app)
    return QuoteNegotiationEngine(
        QuoteStore(),
        outbox,
        default_validity_days=app.config.get("QUOTE_DEFAULT_VALIDITY_DAYS", DEFAULT_VALIDITY_DAYS),
    )
