"""SQLAlchemy ORM models."""

from auctionhouse.models.auction import Auction, AuctionStatus
from auctionhouse.models.base import TimestampMixin
from auctionhouse.models.bid import Bid, ProxyCeiling
from auctionhouse.models.gate import BidRejection, BidRequest, BidRequestStatus
from auctionhouse.models.order import (
    Order,
    OrderChatMessage,
    OrderInvoice,
    OrderShipment,
    OrderStatus,
    Rating,
)
from auctionhouse.models.user import User

__all__ = [
    "TimestampMixin",
    "User",
    "Auction",
    "AuctionStatus",
    "Bid",
    "ProxyCeiling",
    "BidRequest",
    "BidRequestStatus",
    "BidRejection",
    "Order",
    "OrderStatus",
    "OrderInvoice",
    "OrderShipment",
    "OrderChatMessage",
    "Rating",
]
