# eventdesk/models/quote.py
from datetime import datetime
import enum
from sqlalchemy.orm import validates
from ..extensions import db


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    QUOTED = "quoted"
    FINALISED = "finalised"   # request-level label for an accepted revision
    REJECTED = "rejected"


class RevisionStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"

    @classmethod
    def active(cls):
        return (cls.DRAFT, cls.SENT)

    @classmethod
    def ever_sent(cls):
        return (cls.SENT, cls.ACCEPTED, cls.REJECTED, cls.SUPERSEDED)


def _status_column(enum_cls, default):
    return db.Column(
        db.Enum(
            enum_cls,
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
            validate_strings=True,
            length=20,
        ),
        default=default,
        nullable=False,
        index=True,
    )


def _coerce(enum_cls, value):
    # raises ValueError for anything outside the enumeration
    return value if isinstance(value, enum_cls) else enum_cls(value)


def _money(val):
    return float(val) if val is not None else None


class QuoteRequest(db.Model):
    __tablename__ = "quote_request"

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendor.id"), nullable=False, index=True)
    requester_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), index=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    status = _status_column(RequestStatus, RequestStatus.PENDING)
    details = db.Column(db.Text)
    event_type = db.Column(db.String(80))
    event_date = db.Column(db.Date)
    budget = db.Column(db.Numeric(12, 2))
    quote_amount = db.Column(db.Numeric(12, 2))  # latest sent amount
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    vendor = db.relationship("Vendor", back_populates="quote_requests")
    requester = db.relationship("User")
    revisions = db.relationship(
        "QuoteRevision",
        back_populates="quote_request",
        order_by="QuoteRevision.revision_number.desc()",
        cascade="all, delete-orphan",
    )

    @validates("status")
    def _check_status(self, key, value):
        return _coerce(RequestStatus, value)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "requester_id": self.requester_id,
            "name": self.name,
            "email": self.email,
            "status": self.status.value if self.status else None,
            "details": self.details,
            "event_type": self.event_type,
            "event_date": self.event_date.isoformat() if self.event_date else None,
            "budget": _money(self.budget),
            "quote_amount": _money(self.quote_amount),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class QuoteRevision(db.Model):
    __tablename__ = "quote_revision"
    __table_args__ = (
        db.UniqueConstraint("quote_request_id", "revision_number", name="uq_revision_number"),
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_request_id = db.Column(
        db.Integer, db.ForeignKey("quote_request.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendor.id"), nullable=False, index=True)

    quote_amount = db.Column(db.Numeric(12, 2))
    description = db.Column(db.Text)
    terms = db.Column(db.Text)
    validity_days = db.Column(db.Integer, nullable=False, default=7)
    revision_number = db.Column(db.Integer, nullable=False)
    status = _status_column(RevisionStatus, RevisionStatus.DRAFT)
    notes = db.Column(db.Text)          # vendor-internal, never shown to the client
    client_notes = db.Column(db.Text)   # feedback given with the response

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    sent_at = db.Column(db.DateTime)
    responded_at = db.Column(db.DateTime)

    quote_request = db.relationship("QuoteRequest", back_populates="revisions")
    comments = db.relationship(
        "QuoteComment",
        back_populates="revision",
        order_by="QuoteComment.created_at.asc()",
        cascade="all, delete-orphan",
    )

    @validates("status")
    def _check_status(self, key, value):
        return _coerce(RevisionStatus, value)

    @property
    def is_active(self) -> bool:
        return self.status in RevisionStatus.active()

    def to_dict(self, *, include_internal: bool = False) -> dict:
        data = {
            "id": self.id,
            "quote_request_id": self.quote_request_id,
            "vendor_id": self.vendor_id,
            "quote_amount": _money(self.quote_amount),
            "description": self.description,
            "terms": self.terms,
            "validity_days": self.validity_days,
            "revision_number": self.revision_number,
            "status": self.status.value if self.status else None,
            "client_notes": self.client_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
        }
        if include_internal:
            data["notes"] = self.notes
        return data


class QuoteComment(db.Model):
    __tablename__ = "quote_comment"

    AUTHOR_TYPES = ("client", "vendor")

    id = db.Column(db.Integer, primary_key=True)
    quote_revision_id = db.Column(
        db.Integer, db.ForeignKey("quote_revision.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"))
    author_type = db.Column(db.String(10), nullable=False)  # client|vendor
    message = db.Column(db.Text, nullable=False)
    is_internal = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    revision = db.relationship("QuoteRevision", back_populates="comments")

    @validates("author_type")
    def _check_author_type(self, key, value):
        if value not in self.AUTHOR_TYPES:
            raise ValueError(f"unknown author type: {value!r}")
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_revision_id": self.quote_revision_id,
            "author_id": self.author_id,
            "author_type": self.author_type,
            "message": self.message,
            "is_internal": self.is_internal,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
