# eventdesk/security.py
from functools import wraps
from flask import abort
from flask_login import current_user

from .extensions import db, login_manager
from .models.user import User


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(request):
    # Tokens are issued by the identity provider; we only resolve them.
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return User.query.filter_by(api_token=token.strip()).first()


def roles_required(*roles):
    """401 for anonymous callers, 403 when the user's role is not listed."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            if current_user.role not in roles:
                abort(403)
            return view(*args, **kwargs)
        return wrapped
    return decorator


def current_vendor():
    vendor = getattr(current_user, "vendor_profile", None)
    if vendor is None:
        abort(403, description="No vendor profile is linked to this account.")
    return vendor
