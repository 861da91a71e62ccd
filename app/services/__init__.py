from app.services.auction_service import AuctionService
from app.services.auth_service import AuthService
from app.services.bid_resolution import bid_statistics, select_winning_bid
from app.services.bid_service import BidService
from app.services.eligibility_service import EligibilityService
from app.services.notification_service import NotificationService
from app.services.platform_service import PlatformService
from app.services.request_service import RequestService

__all__ = [
    "AuctionService",
    "AuthService",
    "BidService",
    "EligibilityService",
    "NotificationService",
    "PlatformService",
    "RequestService",
    "bid_statistics",
    "select_winning_bid",
]
