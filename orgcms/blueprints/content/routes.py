from flask import current_app, g, jsonify, request

from orgcms.errors import BadRequest, Conflict, NotFound, validation_error
from orgcms.extensions import db
from orgcms.models import Content, Role
from orgcms.services import audit, store
from orgcms.services.policy import role_required
from orgcms.utils.http import int_arg, json_body
from orgcms.utils.validators import clean_str, is_valid_content_key, is_valid_locale
from . import bp

_FIELDS = ("key", "locale", "title", "content", "is_active")
_IS_ACTIVE_ERROR = {"field": "isActive", "message": "isActive must be true or false."}


def _default_locale() -> str:
    return current_app.config.get("CONTENT_DEFAULT_LOCALE", "tr")


def _content_or_404(content_id) -> Content:
    if content_id is None:
        raise BadRequest("id_required")
    row = db.session.get(Content, content_id)
    if row is None:
        raise NotFound("content_not_found")
    return row


def _find(key: str, locale: str):
    return db.session.execute(
        db.select(Content).where(Content.key == key, Content.locale == locale)
    ).scalar_one_or_none()


def _commit_unique():
    try:
        store.commit()
    except store.StoreError as exc:
        if exc.kind == store.StoreErrorKind.UNIQUE_VIOLATION:
            raise Conflict("duplicate_content")
        raise


@bp.get("")
def get_content():
    locale = request.args.get("locale") or _default_locale()
    key = request.args.get("key")
    if key:
        row = _find(key, locale)
        if row is None or not row.is_active:
            raise NotFound("content_not_found")
        return jsonify(row.to_dict()), 200

    rows = db.session.execute(
        db.select(Content)
        .where(Content.locale == locale, Content.is_active.is_(True))
        .order_by(Content.key.asc())
    ).scalars().all()
    return jsonify([r.to_dict() for r in rows]), 200


@bp.post("")
@role_required(Role.OWNER, Role.ADMIN)
def create_content():
    data = json_body()
    key = data.get("key")
    locale = data.get("locale") or _default_locale()
    body = data.get("content")

    errors = []
    if not is_valid_content_key(key):
        errors.append({"field": "key", "message": "Key is required (letters, digits, '.', '_', '-')."})
    if not is_valid_locale(locale):
        errors.append({"field": "locale", "message": "Locale must look like 'tr' or 'en-US'."})
    if not isinstance(body, str) or not body.strip():
        errors.append({"field": "content", "message": "Content is required."})
    if not isinstance(data.get("isActive", True), bool):
        errors.append(_IS_ACTIVE_ERROR)
    if errors:
        raise validation_error(errors)

    if _find(key, locale) is not None:
        raise Conflict("duplicate_content")

    row = Content(
        key=key,
        locale=locale,
        title=clean_str(data.get("title")),
        content=body,
        is_active=data.get("isActive", True),
    )
    db.session.add(row)
    _commit_unique()

    audit.record(g.access, audit.CONTENT_CREATE, resource=f"content:{row.id}", after=audit.snapshot(row, *_FIELDS))
    return jsonify(row.to_dict()), 201


@bp.put("")
@role_required(Role.OWNER, Role.ADMIN)
def update_content():
    data = json_body()
    raw_id = data.get("id")
    body_id = raw_id if isinstance(raw_id, int) and not isinstance(raw_id, bool) else None
    row = _content_or_404(int_arg("id") or body_id)
    before = audit.snapshot(row, *_FIELDS)

    if "content" in data:
        if not isinstance(data["content"], str) or not data["content"].strip():
            raise validation_error([{"field": "content", "message": "Content is required."}])
        row.content = data["content"]
    if "title" in data:
        row.title = clean_str(data["title"])
    if "isActive" in data:
        if not isinstance(data["isActive"], bool):
            raise validation_error([_IS_ACTIVE_ERROR])
        row.is_active = data["isActive"]
    if "locale" in data:
        if not is_valid_locale(data["locale"]):
            raise validation_error([{"field": "locale", "message": "Locale must look like 'tr' or 'en-US'."}])
        row.locale = data["locale"]
    _commit_unique()

    audit.record(g.access, audit.CONTENT_UPDATE, resource=f"content:{row.id}", before=before,
                 after=audit.snapshot(row, *_FIELDS))
    return jsonify(row.to_dict()), 200


@bp.delete("")
@role_required(Role.OWNER, Role.ADMIN)
def delete_content():
    row = _content_or_404(int_arg("id"))
    before = audit.snapshot(row, "id", *_FIELDS)
    db.session.delete(row)
    store.commit()
    audit.record(g.access, audit.CONTENT_DELETE, resource=f"content:{before['id']}", before=before)
    return jsonify({"ok": True}), 200
