from flask import g, jsonify

from orgcms.models import Role
from orgcms.services.audit import list_audit_logs
from orgcms.services.policy import role_required
from orgcms.utils.http import int_arg
from . import bp


@bp.get("")
@role_required(Role.OWNER, Role.ADMIN)
def list_entries():
    limit = int_arg("limit", 20, minimum=1, maximum=100)
    rows = list_audit_logs(g.access.org_id, limit=limit)
    return jsonify([r.to_dict(with_payload=True) for r in rows]), 200
