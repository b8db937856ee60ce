"""
Shared fixtures: an app on in-memory SQLite, a recording notification
dispatcher, a controllable clock and a vendor/client pair.
"""

from datetime import datetime, timedelta

import pytest
from flask import g
from flask.testing import FlaskClient

from eventdesk import create_app
from eventdesk.config import Config
from eventdesk.extensions import db, mail
from eventdesk.models.quote import QuoteRequest, RequestStatus
from eventdesk.models.user import User, Vendor
from eventdesk.services.notifications import NotificationOutbox
from eventdesk.services.quote_engine import QuoteNegotiationEngine
from eventdesk.services.quote_store import QuoteStore


PASSPHRASE = "jt7NOE43FZPn"
MERCHANT_ID = "10000100"


class RecordingDispatcher:
    """Stands in for the email dispatcher; remembers every notify() call."""

    def __init__(self):
        self.calls = []
        self.fail = False

    def notify(self, kind, payload):
        self.calls.append((kind, payload))
        if self.fail:
            raise RuntimeError("mail relay down")
        return True

    def kinds(self):
        return [kind for kind, _ in self.calls]


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class BaseTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    NOTIFY_ASYNC = False
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "noreply@funcxon.test"
    LOG_LEVEL = "DEBUG"
    LOG_JSON = False
    SENTRY_DSN = ""
    ADMIN_EMAILS = ["ops@funcxon.test"]
    EXTERNAL_BASE_URL = "https://funcxon.test"
    PAYFAST_MERCHANT_ID = MERCHANT_ID
    PAYFAST_MERCHANT_KEY = "46f0cd694581a"
    PAYFAST_PASSPHRASE = PASSPHRASE
    PAYFAST_SANDBOX = True
    PAYFAST_VALIDATE_REMOTE = False
    SUBSCRIPTION_AMOUNT = 299.0


def make_config(tmp_path, **overrides):
    return type("SuiteConfig", (BaseTestConfig,), {"LOG_DIR": str(tmp_path / "logs"), **overrides})


@pytest.fixture
def app(tmp_path):
    app = create_app(make_config(tmp_path))
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def dispatcher(app):
    recorder = RecordingDispatcher()
    app.extensions["quote_dispatcher"] = recorder
    return recorder


@pytest.fixture
def clock():
    return Clock(datetime(2025, 3, 1, 9, 0, 0))


@pytest.fixture
def engine(app, dispatcher, clock):
    return QuoteNegotiationEngine(QuoteStore(), NotificationOutbox(dispatcher), clock=clock)


@pytest.fixture
def client_user(app):
    user = User(name="Thandi Mokoena", email="thandi@example.com", role="client")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def vendor_user(app):
    user = User(name="Sipho Dlamini", email="sipho@venues.example", role="vendor")
    vendor = Vendor(name="Sunset Venues", email="bookings@venues.example", user=user)
    db.session.add_all([user, vendor])
    db.session.commit()
    return user


@pytest.fixture
def vendor(vendor_user):
    return vendor_user.vendor_profile


@pytest.fixture
def other_vendor(app):
    user = User(name="Lebo Khumalo", email="lebo@catering.example", role="vendor")
    vendor = Vendor(name="Lebo Catering", email="lebo@catering.example", user=user)
    db.session.add_all([user, vendor])
    db.session.commit()
    return vendor


@pytest.fixture
def quote_request(vendor, client_user, clock):
    req = QuoteRequest(
        vendor_id=vendor.id,
        requester_id=client_user.id,
        name=client_user.name,
        email=client_user.email,
        status=RequestStatus.PENDING,
        details="Wedding for 120 guests",
        created_at=clock(),
    )
    db.session.add(req)
    db.session.commit()
    return req


class ApiClient(FlaskClient):
    """Requests here reuse the fixture's app context, so drop the cached user."""

    def open(self, *args, **kwargs):
        g.pop("_login_user", None)
        return super().open(*args, **kwargs)


@pytest.fixture
def http(app):
    app.test_client_class = ApiClient
    return app.test_client()


@pytest.fixture
def bearer():
    def _headers(user):
        return {"Authorization": f"Bearer {user.api_token}"}
    return _headers


@pytest.fixture
def outgoing(app):
    app.config["MAIL_SUPPRESS_SEND"] = False  # Flask-Mail itself stays suppressed
    with mail.record_messages() as outbox:
        yield outbox
