"""
Dashboard endpoints for org owners/admins.

GET dispatches on ``?action=``: ``stats``, ``recent-contacts``,
``system-logs``; anything else returns the overview.
"""
from collections import OrderedDict
from datetime import datetime, timedelta, timezone

from flask import jsonify, request

from orgcms.errors import BadRequest, validation_error
from orgcms.extensions import db
from orgcms.models import Content, ContactForm, Media, Role, SystemLog
from orgcms.models.system_log import LOG_LEVELS
from orgcms.services import store
from orgcms.services.audit import request_ip, request_ua
from orgcms.services.policy import role_required
from orgcms.utils.http import int_arg, json_body
from orgcms.blueprints.contact.routes import contact_or_404, update_status
from . import bp


def _count(q) -> int:
    return db.session.execute(q).scalar_one()


def _service_counts(limit=None):
    q = (
        db.select(ContactForm.service, db.func.count(ContactForm.id).label("n"))
        .group_by(ContactForm.service)
        .order_by(db.desc("n"), ContactForm.service.asc())
    )
    if limit:
        q = q.limit(limit)
    return [{"service": s, "count": n} for s, n in db.session.execute(q).all()]


def _overview():
    since = datetime.now(timezone.utc) - timedelta(hours=24)
    return {
        "overview": {
            "totalContacts": _count(db.select(db.func.count(ContactForm.id))),
            "newContacts": _count(db.select(db.func.count(ContactForm.id)).where(ContactForm.created_at >= since)),
            "totalContents": _count(db.select(db.func.count(Content.id)).where(Content.is_active.is_(True))),
            "totalMedia": _count(db.select(db.func.count(Media.id))),
        },
        "serviceStats": _service_counts(),
    }


def _monthly_contacts(months: int = 12):
    """Contact counts per calendar month (``YYYY-MM``), newest first."""
    since = datetime.now(timezone.utc) - timedelta(days=31 * months)
    stamps = db.session.execute(
        db.select(ContactForm.created_at).where(ContactForm.created_at >= since)
    ).scalars().all()
    buckets = OrderedDict()
    for ts in sorted(stamps, reverse=True):
        key = ts.strftime("%Y-%m")
        buckets[key] = buckets.get(key, 0) + 1
    return [{"month": k, "count": v} for k, v in buckets.items()]


def _stats():
    rows = db.session.execute(
        db.select(ContactForm.status, db.func.count(ContactForm.id)).group_by(ContactForm.status)
    ).all()
    return {
        "statusStats": [{"status": s.value, "count": n} for s, n in rows],
        "monthlyContacts": _monthly_contacts(),
        "topServices": _service_counts(limit=5),
    }


def _recent_contacts(limit: int):
    rows = db.session.execute(
        db.select(ContactForm).order_by(ContactForm.created_at.desc(), ContactForm.id.desc()).limit(limit)
    ).scalars().all()
    return [
        {
            "id": c.id,
            "name": c.name,
            "email": c.email,
            "service": c.service,
            "status": c.status.value,
            "createdAt": c.created_at.isoformat() if c.created_at else None,
        }
        for c in rows
    ]


def _system_logs(limit: int, level=None):
    q = db.select(SystemLog)
    if level:
        q = q.where(SystemLog.level == level.upper())
    rows = db.session.execute(
        q.order_by(SystemLog.created_at.desc(), SystemLog.id.desc()).limit(limit)
    ).scalars().all()
    return [r.to_dict() for r in rows]


@bp.get("")
@role_required(Role.OWNER, Role.ADMIN)
def dashboard():
    action = request.args.get("action")
    if action == "stats":
        data = _stats()
    elif action == "recent-contacts":
        data = _recent_contacts(int_arg("limit", 5, minimum=1, maximum=100))
    elif action == "system-logs":
        data = _system_logs(int_arg("limit", 10, minimum=1, maximum=100), request.args.get("level"))
    else:
        data = _overview()
    return jsonify({"success": True, "data": data}), 200


@bp.post("")
@role_required(Role.OWNER, Role.ADMIN)
def create_system_log():
    body = json_body()
    level = (body.get("level") or "").strip().upper() if isinstance(body.get("level"), str) else ""
    message = body.get("message")

    errors = []
    if level not in LOG_LEVELS:
        errors.append({"field": "level", "message": f"Level must be one of {', '.join(LOG_LEVELS)}."})
    if not isinstance(message, str) or not message.strip():
        errors.append({"field": "message", "message": "Message is required."})
    if errors:
        raise validation_error(errors)

    log = SystemLog(
        level=level,
        message=message.strip()[:500],
        data=body.get("data"),
        ip=request_ip() or "unknown",
        user_agent=request_ua() or "unknown",
    )
    db.session.add(log)
    store.commit()
    return jsonify({"success": True, "data": log.to_dict()}), 201


@bp.put("")
@role_required(Role.OWNER, Role.ADMIN)
def update_contact_status():
    contact_id = int_arg("contactId")
    if contact_id is None:
        raise BadRequest("contact_id_required")
    contact = update_status(contact_or_404(contact_id), json_body().get("status"))
    return jsonify({"success": True, "data": contact.to_dict()}), 200
