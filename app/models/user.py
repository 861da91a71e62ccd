from flask_login import UserMixin

from app.extensions import db
from app.models.base import PKType, TimestampMixin


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    ROLES = {"manager", "owner", "admin"}

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(20), nullable=False, index=True, default="")
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(24), nullable=False, index=True)
    company_id = db.Column(PKType, db.ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True)
    is_active_user = db.Column(db.Boolean, nullable=False, default=True)
    last_login = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    company = db.relationship("Company", back_populates="users")
    equipment = db.relationship("Equipment", back_populates="owner", lazy="dynamic")
    rental_requests = db.relationship("RentalRequest", back_populates="manager", lazy="dynamic")
    bids = db.relationship("RentalBid", back_populates="owner", lazy="dynamic")
    notifications = db.relationship("Notification", back_populates="user", lazy="dynamic")
