# eventdesk/models/user.py
from datetime import datetime, timedelta
import uuid
from flask_login import UserMixin
from sqlalchemy.orm import validates
from ..extensions import db


def _tok() -> str:
    return uuid.uuid4().hex


# ------- Core Models -------

class User(UserMixin, db.Model):
    __tablename__ = "user"

    ROLES = ("client", "vendor", "admin")

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(50))

    # client|vendor|admin
    role = db.Column(db.String(20), nullable=False, default="client", index=True)

    # issued by the identity provider; sent as "Authorization: Bearer <token>"
    api_token = db.Column(db.String(64), unique=True, default=_tok, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor_profile = db.relationship("Vendor", back_populates="user", uselist=False)

    @validates("role")
    def _check_role(self, key, value):
        if value not in self.ROLES:
            raise ValueError(f"unknown role: {value!r}")
        return value

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self):
        return f"<User {self.id} {self.email}>"


# ------- Subscribers (pay for listings through PayFast) -------

class SubscriptionMixin:
    # days of listing bought by one payment, per PayFast billing frequency
    PERIOD_DAYS = {"monthly": 30, "quarterly": 91, "biannually": 182, "annually": 365}

    # inactive|pending|active
    subscription_status = db.Column(db.String(20), default="inactive", nullable=False, index=True)
    billing_period = db.Column(db.String(20), default="monthly", nullable=False)
    pending_payment_id = db.Column(db.String(64), index=True)   # m_payment_id sent to PayFast
    payfast_payment_id = db.Column(db.String(64))               # pf_payment_id from the ITN
    subscription_started_at = db.Column(db.DateTime)
    subscription_expires_at = db.Column(db.DateTime, index=True)
    last_payment_at = db.Column(db.DateTime)
    reminder_5day_sent = db.Column(db.Boolean, default=False, nullable=False)
    reminder_1day_sent = db.Column(db.Boolean, default=False, nullable=False)

    def activate_subscription(self, pf_payment_id=None, when=None):
        """Mark paid and push the expiry out by one billing period.

        A renewal that arrives before the current period ends extends from the
        old expiry rather than from the payment time.
        """
        when = when or datetime.utcnow()
        start = when
        if self.subscription_expires_at and self.subscription_expires_at > when:
            start = self.subscription_expires_at
        if self.subscription_status != "active" or not self.subscription_started_at:
            self.subscription_started_at = when
        self.subscription_status = "active"
        self.subscription_expires_at = start + timedelta(days=self.PERIOD_DAYS.get(self.billing_period or "monthly", 30))
        self.last_payment_at = when
        self.payfast_payment_id = pf_payment_id
        self.reminder_5day_sent = False
        self.reminder_1day_sent = False


class Vendor(SubscriptionMixin, db.Model):
    __tablename__ = "vendor"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), index=True)
    name = db.Column(db.String(160), nullable=False)
    email = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship("User", back_populates="vendor_profile")
    quote_requests = db.relationship("QuoteRequest", back_populates="vendor", lazy="dynamic")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "subscription_status": self.subscription_status,
            "subscription_expires_at": (
                self.subscription_expires_at.isoformat() if self.subscription_expires_at else None
            ),
        }


class Venue(SubscriptionMixin, db.Model):
    __tablename__ = "venue"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), index=True)
    name = db.Column(db.String(160), nullable=False)
    email = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
