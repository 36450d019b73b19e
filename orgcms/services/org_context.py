"""
Org context resolution: which organization a request is scoped to.

Resolution alone is not authorization; callers still run the membership
guards in ``services.policy`` against the returned org id.
"""
from __future__ import annotations

from typing import Optional

from flask import current_app, request
from flask_login import current_user

from orgcms.errors import BadRequest
from orgcms.extensions import db
from orgcms.models import User, OrgMembership, MembershipStatus


def _header_org_id() -> Optional[int]:
    raw = (request.headers.get(current_app.config.get("ORG_HEADER", "X-Org-Id")) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise BadRequest("invalid_org_id")


def first_active_org_id(user_id: int) -> Optional[int]:
    """Oldest ACTIVE membership wins."""
    return db.session.execute(
        db.select(OrgMembership.org_id)
        .where(
            OrgMembership.user_id == user_id,
            OrgMembership.status == MembershipStatus.ACTIVE,
        )
        .order_by(OrgMembership.id.asc())
        .limit(1)
    ).scalar_one_or_none()


def resolve_current_org_id() -> Optional[int]:
    """
    1. explicit override header (trusted as-is)
    2. the user's stored current_org_id
    3. the user's first ACTIVE membership
    """
    override = _header_org_id()
    if override is not None:
        return override

    if not getattr(current_user, "is_authenticated", False):
        return None

    # Always read persisted state; never cache across requests
    stored = db.session.execute(
        db.select(User.current_org_id).where(User.id == current_user.id)
    ).scalar_one_or_none()
    if stored:
        return stored

    return first_active_org_id(current_user.id)


def require_org_id() -> int:
    org_id = resolve_current_org_id()
    if org_id is None:
        raise BadRequest("org_required")
    return org_id
