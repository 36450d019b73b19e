"""
Org and membership mutations.

Each function runs the guard chain's datastore half: it assumes the caller
has already been authorized by ``services.policy`` and commits in one
transaction. Owner-protected changes take the org row lock first, so the
owner count they check cannot change before their own write lands.
Audit entries are written by the route handlers after the commit.
"""
from __future__ import annotations

import json
from typing import Optional, Tuple

from flask import current_app
from sqlalchemy import func

from orgcms.errors import BadRequest, Conflict, NotFound
from orgcms.extensions import db
from orgcms.models import MembershipStatus, Org, OrgMembership, Role, User
from orgcms.services import store
from orgcms.services.policy import ensure_owner_is_not_last, get_membership, lock_org

INVITABLE_ROLES = (Role.ADMIN, Role.MEMBER)


def find_user_by_email(email: str) -> Optional[User]:
    return db.session.execute(
        db.select(User).where(func.lower(User.email) == (email or "").strip().lower())
    ).scalar_one_or_none()


def list_orgs_for_user(user_id: int):
    rows = db.session.execute(
        db.select(Org, OrgMembership)
        .join(OrgMembership, OrgMembership.org_id == Org.id)
        .where(OrgMembership.user_id == user_id)
        .order_by(OrgMembership.id.asc())
    ).all()
    return [
        {"id": org.id, "name": org.name, "role": m.role.value, "status": m.status.value}
        for org, m in rows
    ]


def list_members(org_id: int):
    rows = db.session.execute(
        db.select(OrgMembership, User)
        .join(User, User.id == OrgMembership.user_id)
        .where(OrgMembership.org_id == org_id)
        .order_by(OrgMembership.id.asc())
    ).all()
    return [
        {
            "userId": user.id,
            "email": user.email,
            "name": user.name,
            "role": m.role.value,
            "status": m.status.value,
        }
        for m, user in rows
    ]


def create_org(user: User, name: str) -> Org:
    """New org with ``user`` as its ACTIVE OWNER; becomes the user's current org."""
    org = Org(name=name)
    db.session.add(org)
    store.flush()
    db.session.add(OrgMembership(org_id=org.id, user_id=user.id, role=Role.OWNER, status=MembershipStatus.ACTIVE))
    user.current_org_id = org.id
    store.commit()
    return org


def signup(email: str, password: str, name: Optional[str] = None, org_name: Optional[str] = None) -> Tuple[User, Org]:
    """User + Org + OWNER membership, all or nothing."""
    if find_user_by_email(email) is not None:
        raise Conflict("email_taken")

    user = User(email=email, name=name)
    user.set_password(password)
    db.session.add(user)

    org = Org(name=org_name or f"{name or email}'s Org")
    db.session.add(org)
    try:
        store.flush()
        db.session.add(OrgMembership(org_id=org.id, user_id=user.id, role=Role.OWNER, status=MembershipStatus.ACTIVE))
        user.current_org_id = org.id
        store.commit()
    except store.StoreError as exc:
        # Lost a race against a concurrent signup for the same address
        if exc.kind == store.StoreErrorKind.UNIQUE_VIOLATION:
            raise Conflict("email_taken")
        raise

    current_app.logger.info(json.dumps({"event": "signup", "user_id": user.id, "org_id": org.id}))
    return user, org


def invite(org_id: int, email: str, role: Role = Role.MEMBER) -> OrgMembership:
    """PENDING membership for ``email``; creates a password-less user shell when needed."""
    if role not in INVITABLE_ROLES:
        raise BadRequest("invalid_role")

    user = find_user_by_email(email)
    if user is None:
        user = User(email=email)
        db.session.add(user)
        store.flush()
    else:
        existing = get_membership(user.id, org_id)
        if existing is not None:
            if existing.status == MembershipStatus.ACTIVE:
                raise Conflict("already_member")
            raise Conflict("already_invited")

    membership = OrgMembership(org_id=org_id, user_id=user.id, role=role, status=MembershipStatus.PENDING)
    db.session.add(membership)
    try:
        store.commit()
    except store.StoreError as exc:
        if exc.kind == store.StoreErrorKind.UNIQUE_VIOLATION:
            raise Conflict("already_invited")
        raise
    return membership


def change_role(org_id: int, actor_id: int, target_user_id: int, raw_role) -> Tuple[Role, OrgMembership]:
    """
    Returns (previous role, updated membership).

    Checks in order: role parse, target exists, last-owner, self-target,
    unchanged role. The sole owner demoting themself therefore gets 409.
    """
    new_role = Role.parse(raw_role)
    if new_role is None:
        raise BadRequest("invalid_role")

    lock_org(org_id)
    target = get_membership(target_user_id, org_id)
    if target is None:
        db.session.rollback()
        raise NotFound("member_not_found")

    try:
        if new_role != Role.OWNER:
            ensure_owner_is_not_last(org_id, target_user_id)
        if target_user_id == actor_id:
            raise BadRequest("self_role_change")
        if target.role == new_role:
            raise Conflict("role_unchanged")
    except Exception:
        db.session.rollback()
        raise

    previous = target.role
    target.role = new_role
    store.commit()

    current_app.logger.info(json.dumps({
        "event": "member_role_update",
        "org_id": org_id,
        "actor_id": actor_id,
        "target_user_id": target_user_id,
        "from": previous.value,
        "to": new_role.value,
    }))
    return previous, target


def remove_member(org_id: int, target_user_id: int) -> dict:
    """Deletes the membership; returns its pre-delete snapshot."""
    lock_org(org_id)
    target = get_membership(target_user_id, org_id)
    if target is None:
        db.session.rollback()
        raise NotFound("member_not_found")

    try:
        ensure_owner_is_not_last(org_id, target_user_id)
    except Conflict:
        db.session.rollback()
        raise

    before = target.to_dict()
    user = db.session.get(User, target_user_id)
    if user is not None and user.current_org_id == org_id:
        user.current_org_id = None
    db.session.delete(target)
    store.commit()
    return before


def delete_user(user: User) -> None:
    """Delete ``user`` unless it is the sole ACTIVE OWNER of any org."""
    owned = db.session.execute(
        db.select(OrgMembership.org_id).where(
            OrgMembership.user_id == user.id,
            OrgMembership.role == Role.OWNER,
            OrgMembership.status == MembershipStatus.ACTIVE,
        ).order_by(OrgMembership.org_id.asc())
    ).scalars().all()

    try:
        for org_id in owned:
            lock_org(org_id)
            ensure_owner_is_not_last(org_id, user.id)
    except Conflict:
        db.session.rollback()
        raise

    db.session.delete(user)
    store.commit()


def switch_org(user: User, org_id: int) -> None:
    user.current_org_id = org_id
    store.commit()
