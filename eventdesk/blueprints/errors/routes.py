import logging
from flask import jsonify
from werkzeug.exceptions import HTTPException
from ...errors import EventDeskError
from ...extensions import db
from . import errors_bp

log = logging.getLogger(__name__)


def _error(code: str, message: str, status: int):
    return jsonify({"error": code, "message": message}), status


def _rollback():
    # leave the scoped session usable for the next request
    try:
        db.session.rollback()
    except Exception:
        log.warning("rollback after error failed", exc_info=True)


# Domain errors from the quote services carry their own status (400/403/404/409)
@errors_bp.app_errorhandler(EventDeskError)
def err_domain(e: EventDeskError):
    log.info("%s %s: %s", e.status_code, e.code, e.message)
    return jsonify(e.to_dict()), e.status_code


@errors_bp.app_errorhandler(401)
def err_401(e):
    return _error("unauthorized", "Authentication required.", 401)


@errors_bp.app_errorhandler(404)
def err_404(e):
    return _error("not_found", e.description, 404)


@errors_bp.app_errorhandler(500)
def err_500(e):
    _rollback()
    return _error("server_error", "Something went wrong.", 500)


# 403, 405, 503 ... raised through abort()
@errors_bp.app_errorhandler(HTTPException)
def err_http(e: HTTPException):
    return _error(e.name.lower().replace(" ", "_"), e.description, e.code)


@errors_bp.app_errorhandler(Exception)
def err_unexpected(e):
    _rollback()
    log.exception("Unhandled error: %s", e)
    return _error("server_error", "Something went wrong.", 500)
