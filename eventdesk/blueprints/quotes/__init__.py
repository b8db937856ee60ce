from flask import Blueprint

quotes_bp = Blueprint("quotes", __name__)

# Import route modules to register their endpoints
from . import routes  # noqa: E402,F401
