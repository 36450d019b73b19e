from flask import g, jsonify
from flask_login import current_user, logout_user

from orgcms.errors import Conflict, Forbidden, NotFound, validation_error
from orgcms.extensions import db
from orgcms.models import MembershipStatus, OrgMembership, Role, User
from orgcms.services import audit, memberships, store
from orgcms.services.org_context import require_org_id
from orgcms.services.policy import (
    get_membership,
    require_auth,
    require_membership,
    require_self_or_role,
    role_required,
)
from orgcms.services.ratelimit import api_rate_limit, client_ip, strict_rate_limit
from orgcms.utils.http import json_body
from orgcms.utils.validators import clean_str, is_valid_email, normalize_email, password_errors
from . import bp

_USER_FIELDS = ("email", "name")


def _actor_key(prefix: str) -> str:
    if getattr(current_user, "is_authenticated", False):
        return f"{prefix}:user:{current_user.id}"
    return f"{prefix}:ip:{client_ip()}"


def _org_user_or_404(org_id: int, user_id: int) -> User:
    """Target user, which must belong to the org (ACTIVE or PENDING)."""
    user = db.session.get(User, user_id)
    if user is None or get_membership(user_id, org_id) is None:
        raise NotFound("user_not_found")
    return user


@bp.get("")
def list_users():
    result = api_rate_limit.check(_actor_key("users"))
    require_auth()
    access = require_membership(require_org_id())
    return jsonify(memberships.list_members(access.org_id)), 200, result.headers()


@bp.post("")
@role_required(Role.OWNER, Role.ADMIN)
def create_user():
    data = json_body()
    errors = []
    email = normalize_email(data.get("email"))
    if not is_valid_email(email):
        errors.append({"field": "email", "message": "A valid email address is required."})
    password = data.get("password")
    if password is not None:
        errors.extend({"field": "password", "message": m} for m in password_errors(password))
    role = Role.parse(data.get("role") or Role.MEMBER)
    if role not in memberships.INVITABLE_ROLES:
        errors.append({"field": "role", "message": "Role must be ADMIN or MEMBER."})
    if errors:
        raise validation_error(errors)

    if memberships.find_user_by_email(email) is not None:
        raise Conflict("email_taken")

    user = User(email=email, name=clean_str(data.get("name")))
    if password:
        user.set_password(password)
    db.session.add(user)
    store.flush()
    db.session.add(OrgMembership(
        org_id=g.access.org_id,
        user_id=user.id,
        role=role,
        # Without a password the user cannot sign in yet
        status=MembershipStatus.ACTIVE if password else MembershipStatus.PENDING,
    ))
    try:
        store.commit()
    except store.StoreError as exc:
        if exc.kind == store.StoreErrorKind.UNIQUE_VIOLATION:
            raise Conflict("email_taken")
        raise

    audit.record(
        g.access,
        audit.USER_CREATE,
        resource=f"user:{user.id}",
        after={**audit.snapshot(user, *_USER_FIELDS), "role": role.value},
    )
    return jsonify(user.to_dict()), 201


@bp.get("/<int:user_id>")
def get_user(user_id: int):
    require_auth()
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("user_not_found")
    return jsonify(user.to_dict()), 200


@bp.patch("/<int:user_id>")
def update_user(user_id: int):
    require_auth()
    access = require_self_or_role(require_org_id(), user_id)
    is_self = access.user.id == user_id
    user = access.user if is_self else _org_user_or_404(access.org_id, user_id)

    data = json_body()
    errors = []
    if "email" in data:
        email = normalize_email(data.get("email"))
        if not is_valid_email(email):
            errors.append({"field": "email", "message": "A valid email address is required."})
    if "name" in data and data["name"] is not None and not clean_str(data["name"]):
        errors.append({"field": "name", "message": "Name must not be empty."})
    if "password" in data:
        if not is_self:
            raise Forbidden("password_change_self_only")
        errors.extend({"field": "password", "message": m} for m in password_errors(data["password"]))
    if errors:
        raise validation_error(errors)

    before = audit.snapshot(user, *_USER_FIELDS)

    if "email" in data:
        email = normalize_email(data["email"])
        other = memberships.find_user_by_email(email)
        if other is not None and other.id != user.id:
            raise Conflict("email_taken")
        user.email = email
    if "name" in data:
        user.name = clean_str(data["name"])
    if "password" in data:
        user.set_password(data["password"])

    try:
        store.commit()
    except store.StoreError as exc:
        if exc.kind == store.StoreErrorKind.UNIQUE_VIOLATION:
            raise Conflict("email_taken")
        raise

    audit.record(
        access,
        audit.USER_UPDATE,
        resource=f"user:{user.id}",
        before=before,
        after=audit.snapshot(user, *_USER_FIELDS),
    )
    return jsonify(user.to_dict()), 200


@bp.delete("/<int:user_id>")
def delete_user(user_id: int):
    require_auth()
    strict_rate_limit.check(_actor_key("user-delete"))
    access = require_self_or_role(require_org_id(), user_id)
    is_self = access.user.id == user_id
    user = access.user if is_self else _org_user_or_404(access.org_id, user_id)

    org_id, actor_id = access.org_id, access.user.id
    before = audit.snapshot(user, "id", *_USER_FIELDS)
    memberships.delete_user(user)
    if is_self:
        logout_user()

    audit.log_audit(org_id=org_id, actor_id=actor_id, action=audit.USER_DELETE, resource=f"user:{user_id}", before=before)
    return jsonify({"ok": True}), 200
