# eventdesk/config.py
import os
from dotenv import load_dotenv

load_dotenv()

def _as_bool(val: str | None, default=False) -> bool:
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}

def _as_list(val: str | None) -> list[str]:
    return [part.strip() for part in (val or "").split(",") if part.strip()]

class Config:
    # --- Core ---
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
    APP_VERSION = os.getenv("APP_VERSION")
    EXTERNAL_BASE_URL = os.getenv("EXTERNAL_BASE_URL", "https://funcxon.com")

    # DB
    SQLALCHEMY_DATABASE_URI = (
        os.getenv("SQLALCHEMY_DATABASE_URI")
        or os.getenv("DATABASE_URL")
        or "sqlite:///eventdesk.db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # --- Quotes ---
    QUOTE_DEFAULT_VALIDITY_DAYS = int(os.getenv("QUOTE_DEFAULT_VALIDITY_DAYS", "7"))
    CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "R")

    # --- Notifications ---
    # Dispatch on a worker thread after commit; tests switch this off to assert inline.
    NOTIFY_ASYNC = _as_bool(os.getenv("NOTIFY_ASYNC", "1"))
    NOTIFY_WORKERS = int(os.getenv("NOTIFY_WORKERS", "2"))
    ADMIN_EMAILS = _as_list(os.getenv("ADMIN_EMAILS"))

    # --- Mail ---
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp-relay.brevo.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = _as_bool(os.getenv("MAIL_USE_TLS", "1"))
    MAIL_USE_SSL = _as_bool(os.getenv("MAIL_USE_SSL", "0"))  # don't enable together with TLS
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", MAIL_USERNAME or "noreply@funcxon.com")
    MAIL_DEFAULT_SENDER_NAME = os.getenv("MAIL_DEFAULT_SENDER_NAME", "Funcxon Platform")
    MAIL_SUPPRESS_SEND = _as_bool(os.getenv("MAIL_SUPPRESS_SEND", "0"))
    MAIL_MAX_EMAILS = None
    MAIL_ASCII_ATTACHMENTS = False

    # --- Logging ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = os.getenv("LOG_DIR", "logs")
    LOG_FILENAME = os.getenv("LOG_FILENAME", "eventdesk.log")
    LOG_JSON = _as_bool(os.getenv("LOG_JSON", "0"))

    # --- Sentry ---
    SENTRY_DSN = os.getenv("SENTRY_DSN", "")
    SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0"))

    # --- Payments: PayFast ---
    PAYFAST_MERCHANT_ID = os.getenv("PAYFAST_MERCHANT_ID")
    PAYFAST_MERCHANT_KEY = os.getenv("PAYFAST_MERCHANT_KEY")
    PAYFAST_PASSPHRASE = os.getenv("PAYFAST_PASSPHRASE")  # server-side only
    PAYFAST_SANDBOX = _as_bool(os.getenv("PAYFAST_SANDBOX"))  # True in dev
    PAYFAST_VALIDATE_REMOTE = _as_bool(os.getenv("PAYFAST_VALIDATE_REMOTE", "0"))
    PAYFAST_RETURN_URL = os.getenv("PAYFAST_RETURN_URL")
    PAYFAST_CANCEL_URL = os.getenv("PAYFAST_CANCEL_URL")
    PAYFAST_NOTIFY_URL = os.getenv("PAYFAST_NOTIFY_URL")  # e.g. "https://api.your-domain.com/itn/payfast"
    SUBSCRIPTION_AMOUNT = float(os.getenv("SUBSCRIPTION_AMOUNT", "299.00"))
    BILLING_URL = os.getenv("BILLING_URL")  # defaults to EXTERNAL_BASE_URL + "/app/billing"
