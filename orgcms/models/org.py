from sqlalchemy import func
from orgcms.extensions import db

class Org(db.Model):
    __tablename__ = "orgs"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    memberships = db.relationship(
        "OrgMembership",
        back_populates="org",
        cascade="all, delete-orphan",
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {"id": self.id, "name": self.name}

    def __repr__(self) -> str:
        return f"<Org id={self.id} name={self.name!r}>"
