from flask import Blueprint

bp = Blueprint("org_session", __name__, url_prefix="/api/session")

from . import routes  # noqa: E402,F401
