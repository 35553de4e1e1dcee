from datetime import datetime

from extensions import db


# Fields the Open-AudIT sync overwrites on every merge. Everything else on the
# row belongs to the user once the asset exists.
SYNC_OWNED_FIELDS = (
    "name",
    "type",
    "category",
    "manufacturer",
    "model",
    "specifications",
    "notes",
)

USER_OWNED_FIELDS = (
    "status",
    "location",
    "assigned_user_id",
    "assigned_user_name",
    "purchase_date",
    "purchase_cost",
    "warranty_expiry",
)


class ItamAsset(db.Model):
    __tablename__ = "itam_assets"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = db.Column(db.String(255), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False, default="Hardware")
    category = db.Column(db.String(128), nullable=True, index=True)
    manufacturer = db.Column(db.String(128), nullable=True, index=True)
    model = db.Column(db.String(128), nullable=True)
    serial_number = db.Column(db.String(128), nullable=True, index=True)
    status = db.Column(db.String(32), nullable=False, default="in-stock", index=True)

    location = db.Column(db.String(255), nullable=True)
    assigned_user_id = db.Column(db.String(64), nullable=True)
    assigned_user_name = db.Column(db.String(255), nullable=True)
    purchase_date = db.Column(db.Date, nullable=True)
    purchase_cost = db.Column(db.Numeric(10, 2), nullable=True)
    warranty_expiry = db.Column(db.Date, nullable=True)

    specifications = db.Column(db.JSON, nullable=False, default=dict)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    tenant = db.relationship("Tenant", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint(
            "tenant_id",
            "serial_number",
            name="uq_itam_assets_tenant_serial",
        ),
        # Name only identifies a device until a serial is known.
        db.Index(
            "uq_itam_assets_tenant_name_no_serial",
            "tenant_id",
            "name",
            unique=True,
            postgresql_where=db.text("serial_number IS NULL"),
            sqlite_where=db.text("serial_number IS NULL"),
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "tenant_name": self.tenant.name if self.tenant else "",
            "name": self.name,
            "type": self.type,
            "category": self.category,
            "manufacturer": self.manufacturer,
            "model": self.model,
            "serial_number": self.serial_number,
            "status": self.status,
            "location": self.location,
            "assigned_user_id": self.assigned_user_id,
            "assigned_user_name": self.assigned_user_name,
            "purchase_date": self.purchase_date.isoformat() if self.purchase_date else None,
            "purchase_cost": str(self.purchase_cost) if self.purchase_cost is not None else None,
            "warranty_expiry": self.warranty_expiry.isoformat() if self.warranty_expiry else None,
            "specifications": self.specifications or {},
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ItamSyncRun(db.Model):
    __tablename__ = "itam_sync_runs"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    source_name = db.Column(db.String(128), nullable=False, default="openaudit", index=True)
    status = db.Column(db.String(32), nullable=False, default="running", index=True)
    stats_json = db.Column(db.JSON, nullable=False, default=dict)
    error_text = db.Column(db.Text, nullable=True)
    started_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    ended_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    tenant = db.relationship("Tenant", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "tenant_name": self.tenant.name if self.tenant else "",
            "source_name": self.source_name,
            "status": self.status,
            "stats": self.stats_json or {},
            "error_text": self.error_text,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
