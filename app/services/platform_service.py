from datetime import timedelta
from decimal import Decimal, InvalidOperation

from flask import current_app

from app.errors import ValidationError
from app.extensions import db
from app.models import PlatformSetting


class PlatformService:
    AUCTION_DURATION_KEY = "auction_duration_hours"
    MAX_AUCTION_DURATION_HOURS = Decimal("720")

    @staticmethod
    def get_setting(key, default=None):
        setting = db.session.get(PlatformSetting, key)
        if not setting:
            return default
        return setting.value

    @staticmethod
    def get_decimal(key, default):
        raw = PlatformService.get_setting(key, str(default))
        try:
            return Decimal(str(raw))
        except (InvalidOperation, ValueError):
            current_app.logger.warning("Platform setting %s has non-numeric value %r", key, raw)
            return Decimal(str(default))

    @staticmethod
    def set_setting(key, value, description=None):
        setting = db.session.get(PlatformSetting, key)
        if setting:
            setting.value = str(value)
            if description is not None:
                setting.description = description
        else:
            setting = PlatformSetting(key=key, value=str(value), description=description)
            db.session.add(setting)
        db.session.commit()
        return setting

    @staticmethod
    def _valid_duration(hours):
        return hours.is_finite() and 0 < hours <= PlatformService.MAX_AUCTION_DURATION_HOURS

    @staticmethod
    def auction_duration():
        hours = PlatformService.get_decimal(
            PlatformService.AUCTION_DURATION_KEY,
            current_app.config["AUCTION_DURATION_HOURS"],
        )
        if not PlatformService._valid_duration(hours):
            current_app.logger.warning("Ignoring out-of-range auction duration %s", hours)
            hours = Decimal(str(current_app.config["AUCTION_DURATION_HOURS"]))
        return timedelta(hours=float(hours))

    @staticmethod
    def set_auction_duration(hours):
        try:
            value = Decimal(str(hours).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError("Auction duration must be a number of hours.") from exc
        if not PlatformService._valid_duration(value):
            raise ValidationError(
                f"Auction duration must be more than 0 and at most {PlatformService.MAX_AUCTION_DURATION_HOURS} hours."
            )
        return PlatformService.set_setting(
            PlatformService.AUCTION_DURATION_KEY,
            value,
            description="Bidding window length for new rental requests, in hours.",
        )
