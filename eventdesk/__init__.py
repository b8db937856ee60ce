import atexit
import os
from pathlib import Path
import logging
from concurrent.futures import ThreadPoolExecutor
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify
from .extensions import db, migrate, login_manager, mail
from .config import Config
from .errors import EventDeskError
from . import security  # noqa: F401  (registers the Flask-Login loaders)
from .services.quote_notifications import EmailDispatcher
from .cli import subscriptions_cli

# Blueprints
from .blueprints.errors import errors_bp
from .blueprints.quotes import quotes_bp
from .blueprints.vendor import vendor_bp
from .blueprints.payfast_itn import payfast_itn_bp

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


# Optional: Sentry
def _init_sentry(app):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=app.config.get("SENTRY_TRACES_SAMPLE_RATE", 0.0),
            environment=os.getenv("ENV", "development"),
            release=app.config.get("APP_VERSION") or os.getenv("GIT_COMMIT"),
            # 4xx domain errors are answered, not bugs
            ignore_errors=[EventDeskError],
            send_default_pii=False,
        )
        app.logger.info("Sentry initialized (env=%s).", os.getenv("ENV", "development"))
    except Exception as e:
        app.logger.warning("Sentry init failed: %s", e)


def _log_formatter(app):
    if app.config.get("LOG_JSON", False):
        import json_log_formatter
        return json_log_formatter.VerboseJSONFormatter()
    return logging.Formatter(LOG_FORMAT)


def _init_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    # app.logger is "eventdesk", so every module logger below it lands here too
    logger = app.logger
    logger.setLevel(level)

    # same logger object across create_app() calls; replace what we added last time
    for old in [h for h in logger.handlers if getattr(h, "_eventdesk", False)]:
        logger.removeHandler(old)
        old.close()

    log_dir = Path(app.config.get("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    formatter = _log_formatter(app)
    handlers = [
        # 5MB x 5 on disk
        RotatingFileHandler(
            log_dir / app.config.get("LOG_FILENAME", "eventdesk.log"),
            maxBytes=5_000_000, backupCount=5, encoding="utf-8",
        ),
        # stdout for docker / dev server
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler._eventdesk = True
        logger.addHandler(handler)

    logger.info("Logging initialized at %s -> %s", logging.getLevelName(level), log_dir)


def _init_notifications(app):
    # Anything with notify(kind, payload) can replace the email dispatcher (tests do).
    app.extensions["quote_dispatcher"] = EmailDispatcher()
    executor = None
    if app.config.get("NOTIFY_ASYNC", True):
        executor = ThreadPoolExecutor(
            max_workers=app.config.get("NOTIFY_WORKERS", 2),
            thread_name_prefix="notify",
        )
    app.extensions["notify_executor"] = executor
    if executor is not None:
        # let queued emails go out before the interpreter exits
        atexit.register(shutdown_notifications, app)


def shutdown_notifications(app):
    executor = app.extensions.get("notify_executor")
    if executor is None:
        return
    app.extensions["notify_executor"] = None
    executor.shutdown(wait=True)


def _register_filters(app):
    @app.template_filter("money")
    def money(value):
        try:
            amount = float(value)
        except (TypeError, ValueError):
            return value
        symbol = app.config.get("CURRENCY_SYMBOL", "R")
        if amount == int(amount):
            return f"{symbol}{amount:,.0f}"
        return f"{symbol}{amount:,.2f}"


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    # instance/config.py may override anything for a given deployment
    app.config.from_pyfile("config.py", silent=True)
    Path(app.instance_path).mkdir(parents=True, exist_ok=True)

    # Logging first so extension and blueprint setup is captured
    _init_logging(app)
    _init_sentry(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    mail.init_app(app)

    _register_filters(app)
    _init_notifications(app)

    # Blueprints
    app.register_blueprint(errors_bp)  # JSON error handlers
    app.register_blueprint(quotes_bp, url_prefix="/quotes")
    app.register_blueprint(vendor_bp, url_prefix="/vendor")
    app.register_blueprint(payfast_itn_bp)

    # flask subscriptions remind
    app.cli.add_command(subscriptions_cli)

    @app.get("/")
    def index():
        return jsonify({"service": "eventdesk", "version": app.config.get("APP_VERSION")})

    app.logger.info("eventdesk app created (db=%s)", app.config.get("SQLALCHEMY_DATABASE_URI", "").split("://")[0])
    return app
