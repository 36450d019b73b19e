from sqlalchemy import func
from orgcms.extensions import db

class AuditLog(db.Model):
    """Append-only record of a privileged mutation. Rows are never updated or deleted."""
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("orgs.id", ondelete="CASCADE"), nullable=False, index=True)
    # Opaque reference: the actor may be deleted while their history persists
    actor_id = db.Column(db.Integer, nullable=True, index=True)
    action = db.Column(db.String(64), nullable=False)
    resource = db.Column(db.String(255), nullable=True)
    before = db.Column(db.JSON, nullable=True)
    after = db.Column(db.JSON, nullable=True)
    ip = db.Column(db.String(64), nullable=True)
    ua = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        db.Index("ix_audit_logs_org_created_at", "org_id", "created_at"),
    )

    def to_dict(self, with_payload: bool = False):
        data = {
            "id": self.id,
            "orgId": self.org_id,
            "actorId": self.actor_id,
            "action": self.action,
            "resource": self.resource,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if with_payload:
            data.update(before=self.before, after=self.after, ip=self.ip, ua=self.ua)
        return data

    def __repr__(self) -> str:
        return f"<AuditLog id={self.id} org={self.org_id} action={self.action}>"
