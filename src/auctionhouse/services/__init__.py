"""Business logic services."""

from auctionhouse.services.auction_cache import AuctionCache
from auctionhouse.services.bid_service import BidService
from auctionhouse.services.closing_service import AuctionClosingService
from auctionhouse.services.gate_service import BidGateService
from auctionhouse.services.notification_service import NotificationService
from auctionhouse.services.order_service import OrderService
from auctionhouse.services.proxy_bid_service import ProxyBidService
from auctionhouse.services.rating_service import RatingService
from auctionhouse.services.redis_service import RedisService
from auctionhouse.services.user_service import UserService

__all__ = [
    "AuctionCache",
    "AuctionClosingService",
    "BidGateService",
    "BidService",
    "NotificationService",
    "OrderService",
    "ProxyBidService",
    "RatingService",
    "RedisService",
    "UserService",
]
