import enum

from sqlalchemy import func, UniqueConstraint
from orgcms.extensions import db


class Role(str, enum.Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"

    @classmethod
    def parse(cls, value):
        """Role from untrusted input; None when not one of the closed set."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class MembershipStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"


PRIVILEGED_ROLES = (Role.OWNER, Role.ADMIN)


def _enum_column(enum_cls, name):
    # Text + CHECK (no native DB enum); unknown values fail on read
    return db.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=20,
        validate_strings=True,
        values_callable=lambda e: [m.value for m in e],
    )


class OrgMembership(db.Model):
    __tablename__ = "org_memberships"

    id = db.Column(db.Integer, primary_key=True)

    org_id = db.Column(
        db.Integer,
        db.ForeignKey("orgs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # default is member; owner/admin must be explicit
    role = db.Column(_enum_column(Role, "ck_org_memberships_role_valid"), nullable=False, default=Role.MEMBER)
    status = db.Column(
        _enum_column(MembershipStatus, "ck_org_memberships_status_valid"),
        nullable=False,
        default=MembershipStatus.ACTIVE,
    )

    org = db.relationship("Org", back_populates="memberships")
    user = db.relationship("User", back_populates="memberships")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("org_id", "user_id", name="uq_org_memberships_org_user"),
    )

    @property
    def is_active_member(self) -> bool:
        return self.status == MembershipStatus.ACTIVE

    def to_dict(self):
        return {
            "id": self.id,
            "orgId": self.org_id,
            "userId": self.user_id,
            "role": self.role.value,
            "status": self.status.value,
        }

    def __repr__(self) -> str:
        return f"<OrgMembership org={self.org_id} user={self.user_id} role={self.role} status={self.status}>"
