from sqlalchemy import func
from orgcms.extensions import db

LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")

class SystemLog(db.Model):
    __tablename__ = "system_logs"

    id = db.Column(db.Integer, primary_key=True)
    level = db.Column(db.String(16), nullable=False, index=True)
    message = db.Column(db.String(500), nullable=False)
    data = db.Column(db.JSON, nullable=True)
    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "level": self.level,
            "message": self.message,
            "data": self.data,
            "ip": self.ip,
            "userAgent": self.user_agent,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<SystemLog id={self.id} level={self.level}>"
