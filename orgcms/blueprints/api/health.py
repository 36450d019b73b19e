from datetime import datetime, timezone

from flask import current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from orgcms.extensions import db, limiter
from . import bp


@bp.get("/health")
@limiter.exempt
def health():
    now = datetime.now(timezone.utc).isoformat()
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("health check: database unreachable")
        return jsonify({"status": "unhealthy", "database": "disconnected", "timestamp": now}), 503
    return jsonify({"status": "healthy", "database": "connected", "timestamp": now}), 200
