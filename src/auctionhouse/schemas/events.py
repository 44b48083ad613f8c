"""Domain event schemas published after commit."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class BidPlacedData(BaseModel):
    """Data payload for bid placed event."""

    auction_id: str
    bidder_id: str
    amount: Decimal
    price: Decimal
    bid_count: int
    leader_id: str
    automatic_bids: int
    timestamp: datetime


class BidPlacedEvent(BaseModel):
    """Bid placed event, broadcast to everyone watching the auction."""

    event: Literal["bid_placed"] = "bid_placed"
    data: BidPlacedData


class OutbidData(BaseModel):
    """Data payload for outbid event."""

    auction_id: str
    bidder_id: str
    previous_amount: Decimal
    new_amount: Decimal
    new_leader_id: str
    timestamp: datetime


class OutbidNoticeEvent(BaseModel):
    """Sent to a bidder who just lost the lead."""

    event: Literal["outbid"] = "outbid"
    data: OutbidData


class OrderTransitionData(BaseModel):
    """Data payload for order transition event."""

    order_id: str
    auction_id: str
    seller_id: str
    buyer_id: str
    transition: str
    status: str
    timestamp: datetime


class OrderTransitionEvent(BaseModel):
    event: Literal["order_transition"] = "order_transition"
    data: OrderTransitionData


class AuctionClosedData(BaseModel):
    """Data payload for auction closed event."""

    auction_id: str
    final_price: Decimal
    winner_id: str | None = None
    order_id: str | None = None
    timestamp: datetime


class AuctionClosedEvent(BaseModel):
    event: Literal["auction_closed"] = "auction_closed"
    data: AuctionClosedData
