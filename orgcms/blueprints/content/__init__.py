from flask import Blueprint

bp = Blueprint("content", __name__, url_prefix="/api/content")

from . import routes  # noqa: E402,F401
