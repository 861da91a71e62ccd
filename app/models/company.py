from app.extensions import db
from app.models.base import PKType, TimestampMixin


class Company(TimestampMixin, db.Model):
    __tablename__ = "companies"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(160), nullable=False, unique=True)
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    users = db.relationship("User", back_populates="company", lazy="dynamic")


class CompanyPartnership(TimestampMixin, db.Model):
    """Authorizes an owner company's equipment to serve a manager company's requests."""

    __tablename__ = "company_partnerships"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    owner_company_id = db.Column(PKType, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    manager_company_id = db.Column(
        PKType, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    owner_company = db.relationship("Company", foreign_keys=[owner_company_id])
    manager_company = db.relationship("Company", foreign_keys=[manager_company_id])

    __table_args__ = (
        db.UniqueConstraint("owner_company_id", "manager_company_id", name="uq_partnership_pair"),
    )
