from flask import Blueprint

bp = Blueprint("media", __name__, url_prefix="/api/media")

from . import routes  # noqa: E402,F401
