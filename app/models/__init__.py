from app.models.company import Company, CompanyPartnership
from app.models.equipment import Equipment
from app.models.notification import Notification
from app.models.platform_setting import PlatformSetting
from app.models.rental_bid import RentalBid
from app.models.rental_request import RentalRequest
from app.models.user import User

__all__ = [
    "User",
    "Company",
    "CompanyPartnership",
    "Equipment",
    "RentalRequest",
    "RentalBid",
    "Notification",
    "PlatformSetting",
]
