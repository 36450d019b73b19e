"""
Access guards for org-scoped operations.

Every guard raises a typed ``ApiError`` (401/403/409) that short-circuits the
request; ``create_app()`` turns it into JSON. Guards are plain functions so
handlers can call them after resolving org context, plus decorator forms for
the common "resolve org, then require a role" case.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Iterable, Optional

from flask import g
from flask_login import current_user

from orgcms.errors import Conflict, Forbidden, Unauthorized
from orgcms.extensions import db
from orgcms.models import Org, OrgMembership, Role, MembershipStatus, User, PRIVILEGED_ROLES
from orgcms.services.org_context import require_org_id


@dataclass(frozen=True)
class AccessContext:
    user: User
    membership: OrgMembership

    @property
    def org_id(self) -> int:
        return self.membership.org_id

    @property
    def role(self) -> Role:
        return self.membership.role


def _roles(roles: Iterable) -> frozenset:
    parsed = {Role.parse(r) for r in roles}
    parsed.discard(None)
    return frozenset(parsed)


def require_auth() -> User:
    if not getattr(current_user, "is_authenticated", False):
        raise Unauthorized()
    return current_user._get_current_object()


def get_membership(user_id: int, org_id: int) -> Optional[OrgMembership]:
    return db.session.execute(
        db.select(OrgMembership).where(
            OrgMembership.user_id == user_id,
            OrgMembership.org_id == org_id,
        )
    ).scalar_one_or_none()


def require_membership(org_id: int) -> AccessContext:
    user = require_auth()
    m = get_membership(user.id, org_id)
    if m is None or m.status != MembershipStatus.ACTIVE:
        raise Forbidden()
    return AccessContext(user=user, membership=m)


def require_role(org_id: int, roles: Iterable) -> AccessContext:
    ctx = require_membership(org_id)
    if ctx.membership.role not in _roles(roles):
        raise Forbidden()
    return ctx


def require_self_or_role(org_id: int, target_user_id: int, roles: Iterable = PRIVILEGED_ROLES) -> AccessContext:
    """A user may always act on themself; privileged roles may act on others."""
    ctx = require_membership(org_id)
    is_self = ctx.user.id == target_user_id
    if not is_self and ctx.membership.role not in _roles(roles):
        raise Forbidden()
    return ctx


def count_active_owners(org_id: int) -> int:
    return db.session.execute(
        db.select(db.func.count(OrgMembership.id)).where(
            OrgMembership.org_id == org_id,
            OrgMembership.role == Role.OWNER,
            OrgMembership.status == MembershipStatus.ACTIVE,
        )
    ).scalar_one()


def lock_org(org_id: int) -> None:
    """
    Row-lock the org for the rest of the current transaction.

    Owner-count checks and the write that follows them run under this lock so
    two concurrent demotions/removals in one org are serialized.
    SQLite ignores FOR UPDATE, so the guarantee holds on PostgreSQL only.
    """
    db.session.execute(db.select(Org.id).where(Org.id == org_id).with_for_update())


def ensure_owner_is_not_last(org_id: int, target_user_id: int) -> None:
    """Precondition for demoting/removing ``target_user_id``; no-op for non-owners."""
    target = get_membership(target_user_id, org_id)
    if target is None or target.role != Role.OWNER or target.status != MembershipStatus.ACTIVE:
        return
    if count_active_owners(org_id) <= 1:
        raise Conflict("last_owner_protection")


_PERMISSIONS = {
    Role.OWNER: (
        "org.read",
        "org.update",
        "members.list",
        "members.invite",
        "members.remove",
        "members.changeRole",
        "audit.view",
    ),
    Role.ADMIN: (
        "org.read",
        "org.update",
        "members.list",
        "members.invite",
        "members.remove",
        "audit.view",
    ),
    Role.MEMBER: ("org.read", "members.list"),
}


def permissions_for(role: Role) -> list:
    return list(_PERMISSIONS.get(role, _PERMISSIONS[Role.MEMBER]))


# --- decorator forms ---

def member_required(fn):
    @wraps(fn)
    def _wrap(*args, **kwargs):
        require_auth()
        g.access = require_membership(require_org_id())
        return fn(*args, **kwargs)
    return _wrap


def role_required(*roles):
    def deco(fn):
        @wraps(fn)
        def _wrap(*args, **kwargs):
            # 401 before org resolution: anonymous callers never see 400 org_required
            require_auth()
            g.access = require_role(require_org_id(), roles)
            return fn(*args, **kwargs)
        return _wrap
    return deco
