from flask import jsonify

from orgcms.errors import BadRequest
from orgcms.extensions import db
from orgcms.models import Org
from orgcms.services import audit, memberships
from orgcms.services.org_context import resolve_current_org_id
from orgcms.services.policy import permissions_for, require_auth, require_membership
from orgcms.utils.http import json_body
from . import bp


@bp.get("/org")
def current_org():
    require_auth()
    org_id = resolve_current_org_id()
    if org_id is None:
        return jsonify({"org": None, "role": None, "permissions": []}), 200

    access = require_membership(org_id)
    org = db.session.get(Org, org_id)
    return jsonify({
        "org": org.to_dict() if org else {"id": org_id},
        "role": access.role.value,
        "permissions": permissions_for(access.role),
    }), 200


@bp.patch("/org")
def switch_org():
    user = require_auth()
    raw = json_body().get("orgId")
    if raw is None or raw == "":
        raise BadRequest("org_id_required")
    # JSON booleans are ints in Python; only real integers or digit strings count
    if isinstance(raw, bool) or not isinstance(raw, (int, str)):
        raise BadRequest("invalid_org_id")
    try:
        org_id = int(raw)
    except ValueError:
        raise BadRequest("invalid_org_id")

    access = require_membership(org_id)
    before = {"currentOrgId": user.current_org_id}
    memberships.switch_org(user, org_id)
    audit.record(access, audit.ORG_SWITCH, resource=f"org:{org_id}", before=before, after={"currentOrgId": org_id})
    return jsonify({"ok": True, "orgId": org_id}), 200
