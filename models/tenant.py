from extensions import db
from datetime import datetime

class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False, index=True)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)
    # Organization id inside the shared Open-AudIT instance.
    openaudit_org_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "openaudit_org_id": self.openaudit_org_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
