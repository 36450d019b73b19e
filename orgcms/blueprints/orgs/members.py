from flask import g, jsonify

from orgcms.errors import validation_error
from orgcms.models import Role
from orgcms.services import audit, memberships
from orgcms.services.policy import member_required, role_required
from orgcms.utils.http import json_body
from orgcms.utils.validators import is_valid_email, normalize_email
from . import bp


@bp.get("/members")
@member_required
def list_members():
    return jsonify(memberships.list_members(g.access.org_id)), 200


@bp.post("/members/invite")
@role_required(Role.OWNER, Role.ADMIN)
def invite_member():
    data = json_body()
    email = normalize_email(data.get("email"))
    if not is_valid_email(email):
        raise validation_error([{"field": "email", "message": "A valid email address is required."}])

    role = Role.parse(data.get("role") or Role.MEMBER)
    if role not in memberships.INVITABLE_ROLES:
        raise validation_error([{"field": "role", "message": "Role must be ADMIN or MEMBER."}])

    m = memberships.invite(g.access.org_id, email, role)
    audit.record(
        g.access,
        audit.MEMBER_INVITE,
        resource=f"user:{m.user_id}",
        after={"email": email, "role": m.role.value, "status": m.status.value},
    )
    return jsonify({"ok": True, "membership": m.to_dict(), "email": email}), 201


@bp.patch("/members/<int:user_id>/role")
@role_required(Role.OWNER)
def change_member_role(user_id: int):
    data = json_body()
    previous, m = memberships.change_role(g.access.org_id, g.access.user.id, user_id, data.get("role"))
    audit.record(
        g.access,
        audit.MEMBER_ROLE_UPDATE,
        resource=f"user:{user_id}",
        before={"role": previous.value},
        after={"role": m.role.value},
    )
    return jsonify({"ok": True, "membership": m.to_dict()}), 200


@bp.delete("/members/<int:user_id>")
@role_required(Role.OWNER, Role.ADMIN)
def remove_member(user_id: int):
    before = memberships.remove_member(g.access.org_id, user_id)
    audit.record(g.access, audit.MEMBER_REMOVE, resource=f"user:{user_id}", before=before)
    return jsonify({"ok": True}), 200
