"""
Audit recorder.

Append-only: this module only ever inserts ``AuditLog`` rows. Writes are
best-effort relative to the mutation they describe: the business change is
committed first, and a failing audit insert is rolled back and logged
without failing the request.
"""
from __future__ import annotations

import enum
import json
from datetime import date, datetime
from typing import Any, Optional

from flask import current_app, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from orgcms.extensions import db
from orgcms.models import AuditLog


# Action tags
ORG_CREATE = "ORG_CREATE"
ORG_SWITCH = "ORG_SWITCH"
MEMBER_INVITE = "MEMBER_INVITE"
MEMBER_ROLE_UPDATE = "MEMBER_ROLE_UPDATE"
MEMBER_REMOVE = "MEMBER_REMOVE"
USER_CREATE = "USER_CREATE"
USER_UPDATE = "USER_UPDATE"
USER_DELETE = "USER_DELETE"
CONTACT_UPDATE = "CONTACT_UPDATE"
CONTACT_DELETE = "CONTACT_DELETE"
CONTENT_CREATE = "CONTENT_CREATE"
CONTENT_UPDATE = "CONTENT_UPDATE"
CONTENT_DELETE = "CONTENT_DELETE"
MEDIA_UPLOAD = "MEDIA_UPLOAD"
MEDIA_DELETE = "MEDIA_DELETE"


class AuditScopeError(ValueError):
    """Raised when an audit entry cannot be attributed to an organization."""


def request_ip() -> Optional[str]:
    if not has_request_context():
        return None
    return request.remote_addr


def request_ua() -> Optional[str]:
    if not has_request_context():
        return None
    return request.headers.get("User-Agent")


def _json_safe(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def snapshot(obj, *fields: str) -> Optional[dict]:
    """JSON-safe dict of the given attributes (None if obj is None)."""
    if obj is None:
        return None
    return {f: _json_safe(getattr(obj, f, None)) for f in fields}


def log_audit(
    *,
    org_id: Optional[int],
    action: str,
    actor_id: Optional[int] = None,
    resource: Optional[str] = None,
    before: Any = None,
    after: Any = None,
    ip: Optional[str] = None,
    ua: Optional[str] = None,
) -> Optional[AuditLog]:
    if org_id is None:
        raise AuditScopeError(f"audit entry {action!r} has no organization")

    entry = AuditLog(
        org_id=org_id,
        actor_id=actor_id,
        action=action,
        resource=resource,
        before=before,
        after=after,
        ip=ip if ip is not None else request_ip(),
        ua=ua if ua is not None else request_ua(),
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(json.dumps({
            "event": "audit_write_failed",
            "org_id": org_id,
            "actor_id": actor_id,
            "action": action,
            "resource": resource,
            "error": str(exc.__class__.__name__),
        }))
        return None
    return entry


def write_audit(**kwargs) -> Optional[AuditLog]:
    """
    Entry point for callers that may not know the org: resolves it from the
    request (header / session default) and still refuses to write unscoped.
    """
    if kwargs.get("org_id") is None:
        from orgcms.services.org_context import resolve_current_org_id
        kwargs["org_id"] = resolve_current_org_id() if has_request_context() else None
    if kwargs["org_id"] is None:
        raise AuditScopeError("write_audit requires an org_id; none could be resolved from the request")
    return log_audit(**kwargs)


def list_audit_logs(org_id: int, limit: int = 20):
    return db.session.execute(
        db.select(AuditLog)
        .where(AuditLog.org_id == org_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
    ).scalars().all()


def record(access, action: str, **kwargs) -> Optional[AuditLog]:
    """``log_audit`` attributed to a guard's ``AccessContext`` (org + actor)."""
    return log_audit(org_id=access.org_id, actor_id=access.user.id, action=action, **kwargs)
