from app.extensions import db
from app.models.base import PKType, TimestampMixin


class Equipment(TimestampMixin, db.Model):
    __tablename__ = "equipment"

    STATUSES = {"available", "busy", "maintenance"}

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(140), nullable=False)
    type = db.Column(db.String(80), nullable=False, index=True)
    subtype = db.Column(db.String(80), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="available", index=True)
    location = db.Column(db.String(255), nullable=True)
    hourly_rate = db.Column(db.Numeric(12, 2), nullable=True)
    daily_rate = db.Column(db.Numeric(12, 2), nullable=True)

    owner = db.relationship("User", back_populates="equipment")
    bids = db.relationship("RentalBid", back_populates="equipment", lazy="dynamic")

    __table_args__ = (
        db.Index("ix_equipment_type_subtype_status", "type", "subtype", "status"),
    )
