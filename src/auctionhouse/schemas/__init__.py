"""Pydantic schemas for request/response validation."""

from auctionhouse.schemas.auction import AuctionResponse, AuctionSnapshot
from auctionhouse.schemas.bid import (
    BidCreate,
    BidHistoryResponse,
    BidRecord,
    BidResult,
    BuyNowResult,
    CeilingRecord,
    OutbidEvent,
    ProxyCeilingRemoved,
    ProxyCeilingSet,
    ProxyResolution,
)
from auctionhouse.schemas.events import (
    AuctionClosedEvent,
    BidPlacedEvent,
    OrderTransitionEvent,
    OutbidNoticeEvent,
)
from auctionhouse.schemas.gate import (
    BidRequestCreate,
    BidRequestRecord,
    BidRequestResolve,
    BidRequestResult,
    Eligibility,
    RejectBidderCreate,
    RejectedBidder,
    RejectionResult,
    SellerBidRequest,
    UnrejectResult,
)
from auctionhouse.schemas.order import (
    CancelOrderCreate,
    ChatMessageCreate,
    ChatMessageRecord,
    InvoiceRecord,
    OrderDetail,
    OrderRatings,
    OrderRecord,
    PaymentDetailsCreate,
    RatingCreate,
    RatingRecord,
    ShipmentCreate,
    ShipmentRecord,
    WorkflowStep,
)

__all__ = [
    "AuctionSnapshot",
    "AuctionResponse",
    "BidCreate",
    "BidRecord",
    "BidResult",
    "BidHistoryResponse",
    "BuyNowResult",
    "CeilingRecord",
    "OutbidEvent",
    "ProxyCeilingSet",
    "ProxyCeilingRemoved",
    "ProxyResolution",
    "BidPlacedEvent",
    "OutbidNoticeEvent",
    "OrderTransitionEvent",
    "AuctionClosedEvent",
    "Eligibility",
    "BidRequestCreate",
    "BidRequestRecord",
    "BidRequestResolve",
    "BidRequestResult",
    "SellerBidRequest",
    "RejectBidderCreate",
    "RejectedBidder",
    "RejectionResult",
    "UnrejectResult",
    "OrderRecord",
    "OrderDetail",
    "OrderRatings",
    "InvoiceRecord",
    "ShipmentRecord",
    "ChatMessageRecord",
    "RatingRecord",
    "WorkflowStep",
    "PaymentDetailsCreate",
    "ShipmentCreate",
    "CancelOrderCreate",
    "RatingCreate",
    "ChatMessageCreate",
]
