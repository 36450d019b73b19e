import json

from flask import current_app, g, jsonify, request

from orgcms.errors import BadRequest, NotFound
from orgcms.extensions import db
from orgcms.models import Media, Role
from orgcms.services import audit, store, uploads
from orgcms.services.policy import role_required
from orgcms.utils.http import int_arg, pagination
from . import bp


@bp.get("")
@role_required(Role.OWNER, Role.ADMIN)
def list_media():
    page = int_arg("page", 1, minimum=1)
    limit = int_arg("limit", 20, minimum=1, maximum=100)
    q = db.select(Media)
    category = request.args.get("category")
    if category:
        q = q.where(Media.category == category)

    total = db.session.execute(db.select(db.func.count()).select_from(q.subquery())).scalar_one()
    rows = db.session.execute(
        q.order_by(Media.created_at.desc(), Media.id.desc()).offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return jsonify({"items": [m.to_dict() for m in rows], "pagination": pagination(total, page, limit)}), 200


@bp.post("")
@role_required(Role.OWNER, Role.ADMIN)
def upload():
    files = [f for f in request.files.getlist("file") if f and f.filename]
    if not files:
        raise BadRequest("file_required")

    category = request.form.get("category") or None
    if category not in (None, "image", "document"):
        raise BadRequest("invalid_category")
    alt = (request.form.get("alt") or "").strip() or None

    created, failures = [], []
    for storage in files:
        result = uploads.upload_file(storage, category)
        if not result.success:
            failures.append({"file": storage.filename, "message": result.error})
            continue
        row = Media(
            filename=result.filename,
            original_name=storage.filename,
            mime_type=storage.mimetype,
            size=result.size,
            url=result.url,
            alt=alt,
            category=uploads.file_category(storage.mimetype),
        )
        db.session.add(row)
        created.append(row)

    if not created:
        raise BadRequest("upload_failed", details={"details": failures})

    store.commit()
    current_app.logger.info(json.dumps({
        "event": "media_upload",
        "org_id": g.access.org_id,
        "files": [m.filename for m in created],
        "rejected": len(failures),
    }))
    audit.record(
        g.access,
        audit.MEDIA_UPLOAD,
        resource=",".join(f"media:{m.id}" for m in created),
        after=[audit.snapshot(m, "id", "filename", "mime_type", "size", "url") for m in created],
    )
    return jsonify({"items": [m.to_dict() for m in created], "errors": failures}), 201


@bp.delete("")
@role_required(Role.OWNER, Role.ADMIN)
def delete_media():
    media_id = int_arg("id")
    if media_id is None:
        raise BadRequest("id_required")
    row = db.session.get(Media, media_id)
    if row is None:
        raise NotFound("media_not_found")

    before = row.to_dict()
    db.session.delete(row)
    store.commit()
    # Row first: a missing file must not leave an orphan row behind
    if not uploads.delete_file(before["filename"], before["mimeType"]):
        current_app.logger.warning(json.dumps({"event": "media_file_missing", "filename": before["filename"]}))

    audit.record(g.access, audit.MEDIA_DELETE, resource=f"media:{media_id}", before=before)
    return jsonify({"ok": True}), 200
