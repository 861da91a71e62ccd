from app.extensions import db
from app.models.base import TimestampMixin


class PlatformSetting(TimestampMixin, db.Model):
    """Runtime-tunable key/value settings, e.g. ``auction_duration_hours``."""

    __tablename__ = "platform_settings"

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(255), nullable=True)
