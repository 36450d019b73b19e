from sqlalchemy import func
from orgcms.extensions import db

class Media(db.Model):
    __tablename__ = "media"

    id = db.Column(db.Integer, primary_key=True)
    filename = db.Column(db.String(255), nullable=False, unique=True)
    original_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(128), nullable=False)
    size = db.Column(db.Integer, nullable=False)
    url = db.Column(db.String(512), nullable=False)
    alt = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(32), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "filename": self.filename,
            "originalName": self.original_name,
            "mimeType": self.mime_type,
            "size": self.size,
            "url": self.url,
            "alt": self.alt,
            "category": self.category,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Media id={self.id} filename={self.filename!r}>"
