from flask import Blueprint

bp = Blueprint("orgs", __name__, url_prefix="/api/orgs")

from . import routes  # noqa: E402,F401
from . import members  # noqa: E402,F401
