from app.extensions import db
from app.models.base import PKType, TimestampMixin


class RentalRequest(TimestampMixin, db.Model):
    __tablename__ = "rental_requests"

    STATUSES = {"auction_active", "auction_closed", "completed", "cancelled"}

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    manager_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    equipment_type = db.Column(db.String(80), nullable=False, index=True)
    equipment_subtype = db.Column(db.String(80), nullable=False)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    location = db.Column(db.String(255), nullable=False)
    work_description = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(24), nullable=False, default="auction_active", index=True)
    auction_deadline = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    winning_bid_id = db.Column(
        PKType,
        db.ForeignKey("rental_bids.id", use_alter=True, name="fk_rental_requests_winning_bid"),
        nullable=True,
    )
    eligible_owners = db.Column(db.Integer, nullable=False, default=0)

    # Written once by the closer, together with the status flip.
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    total_bids = db.Column(db.Integer, nullable=True)
    min_price = db.Column(db.Numeric(12, 2), nullable=True)
    max_price = db.Column(db.Numeric(12, 2), nullable=True)
    avg_price = db.Column(db.Numeric(12, 2), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    manager = db.relationship("User", back_populates="rental_requests")
    bids = db.relationship(
        "RentalBid",
        back_populates="request",
        lazy="dynamic",
        foreign_keys="RentalBid.request_id",
    )
    winning_bid = db.relationship("RentalBid", foreign_keys=[winning_bid_id], post_update=True)

    __table_args__ = (
        db.Index("ix_rental_requests_status_deadline", "status", "auction_deadline"),
        db.Index("ix_rental_requests_manager_status", "manager_id", "status"),
        db.CheckConstraint("end_date > start_date", name="ck_rental_request_dates"),
    )
