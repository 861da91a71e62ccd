from app.extensions import db
from app.models.base import PKType, TimestampMixin


class RentalBid(TimestampMixin, db.Model):
    __tablename__ = "rental_bids"

    STATUSES = {"pending", "accepted", "rejected"}

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    request_id = db.Column(
        PKType, db.ForeignKey("rental_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    equipment_id = db.Column(PKType, db.ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, index=True)
    hourly_rate = db.Column(db.Numeric(12, 2), nullable=True)
    daily_rate = db.Column(db.Numeric(12, 2), nullable=True)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    comment = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    request = db.relationship("RentalRequest", back_populates="bids", foreign_keys=[request_id])
    owner = db.relationship("User", back_populates="bids")
    equipment = db.relationship("Equipment", back_populates="bids")

    __table_args__ = (
        db.UniqueConstraint("request_id", "equipment_id", name="uq_bid_request_equipment"),
        db.Index("ix_rental_bids_request_status", "request_id", "status"),
        db.CheckConstraint("total_price > 0", name="ck_bid_total_price_positive"),
    )
