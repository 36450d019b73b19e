from sqlalchemy import func, UniqueConstraint
from orgcms.extensions import db

class Content(db.Model):
    """Localized key/value page content."""
    __tablename__ = "contents"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), nullable=False)
    locale = db.Column(db.String(10), nullable=False, default="tr")
    title = db.Column(db.String(255), nullable=True)
    content = db.Column(db.Text, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("key", "locale", name="uq_contents_key_locale"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "key": self.key,
            "locale": self.locale,
            "title": self.title,
            "content": self.content,
            "isActive": self.is_active,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Content key={self.key!r} locale={self.locale!r}>"
