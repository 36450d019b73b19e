import enum

from sqlalchemy import func
from orgcms.extensions import db


class ContactStatus(str, enum.Enum):
    NEW = "NEW"
    REVIEWED = "REVIEWED"
    RESPONDED = "RESPONDED"
    CLOSED = "CLOSED"


class ContactForm(db.Model):
    __tablename__ = "contact_forms"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(320), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    company = db.Column(db.String(200), nullable=True)
    service = db.Column(db.String(100), nullable=False, index=True)
    sub_service = db.Column(db.String(100), nullable=True)
    message = db.Column(db.Text, nullable=False)
    status = db.Column(
        db.Enum(
            ContactStatus,
            name="ck_contact_forms_status_valid",
            native_enum=False,
            create_constraint=True,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ContactStatus.NEW,
        index=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "service": self.service,
            "subService": self.sub_service,
            "message": self.message,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<ContactForm id={self.id} email={self.email!r} status={self.status}>"
