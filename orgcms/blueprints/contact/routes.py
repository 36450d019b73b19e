import json

from flask import current_app, g, jsonify, request

from orgcms.errors import BadRequest, NotFound, validation_error
from orgcms.extensions import db
from orgcms.models import ContactForm, ContactStatus, Role, SystemLog
from orgcms.services import audit, store
from orgcms.services.audit import request_ip, request_ua
from orgcms.services.email import notify_contact_submission
from orgcms.services.policy import role_required
from orgcms.services.ratelimit import api_rate_limit, client_ip
from orgcms.services.tasks import fire_and_forget
from orgcms.utils.http import int_arg, json_body, pagination
from orgcms.utils.validators import validate_contact
from . import bp


def contact_or_404(contact_id) -> ContactForm:
    if contact_id is None:
        raise BadRequest("id_required")
    contact = db.session.get(ContactForm, contact_id)
    if contact is None:
        raise NotFound("contact_not_found")
    return contact


def _parse_status(raw) -> ContactStatus:
    try:
        return ContactStatus((raw or "").strip().upper())
    except (AttributeError, ValueError):
        raise validation_error([{"field": "status", "message": "Unknown status."}])


def update_status(contact: ContactForm, raw_status) -> ContactForm:
    """Shared by PUT /api/contact and PUT /api/admin; audits the change."""
    status = _parse_status(raw_status)
    before = audit.snapshot(contact, "status")
    contact.status = status
    store.commit()
    audit.record(g.access, audit.CONTACT_UPDATE, resource=f"contact:{contact.id}", before=before,
                 after=audit.snapshot(contact, "status"))
    return contact


@bp.post("")
def submit():
    result = api_rate_limit.check(f"contact:{client_ip()}")

    cleaned, errors = validate_contact(json_body())
    if errors:
        raise validation_error(errors)

    contact = ContactForm(**cleaned)
    db.session.add(contact)
    store.flush()
    db.session.add(SystemLog(
        level="INFO",
        message="Contact form submitted",
        data={"contactId": contact.id, "service": contact.service},
        ip=request_ip(),
        user_agent=request_ua(),
    ))
    store.commit()

    current_app.logger.info(json.dumps({"event": "contact_submitted", "contact_id": contact.id}))
    fire_and_forget(notify_contact_submission, contact.id)

    return jsonify({"ok": True, "id": contact.id}), 201, result.headers()


@bp.get("")
@role_required(Role.OWNER, Role.ADMIN)
def list_contacts():
    contact_id = int_arg("id")
    if contact_id is not None:
        return jsonify(contact_or_404(contact_id).to_dict()), 200

    page = int_arg("page", 1, minimum=1)
    limit = int_arg("limit", 10, minimum=1, maximum=100)
    q = db.select(ContactForm)
    status = request.args.get("status")
    if status:
        q = q.where(ContactForm.status == _parse_status(status))

    total = db.session.execute(db.select(db.func.count()).select_from(q.subquery())).scalar_one()
    rows = db.session.execute(
        q.order_by(ContactForm.created_at.desc(), ContactForm.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return jsonify({"items": [c.to_dict() for c in rows], "pagination": pagination(total, page, limit)}), 200


@bp.put("")
@role_required(Role.OWNER, Role.ADMIN)
def update_contact():
    data = json_body()
    contact_id = int_arg("id")
    if contact_id is None and isinstance(data.get("id"), int):
        contact_id = data["id"]
    contact = update_status(contact_or_404(contact_id), data.get("status"))
    return jsonify(contact.to_dict()), 200


@bp.delete("")
@role_required(Role.OWNER, Role.ADMIN)
def delete_contact():
    contact = contact_or_404(int_arg("id"))
    before = contact.to_dict()
    db.session.delete(contact)
    store.commit()
    audit.record(g.access, audit.CONTACT_DELETE, resource=f"contact:{before['id']}", before=before)
    return jsonify({"ok": True}), 200
