"""Bid and proxy-bid schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class BidCreate(BaseModel):
    """Schema for a manual bid request."""

    amount: Decimal = Field(..., gt=0)


class BidRecord(BaseModel):
    """A stored bid."""

    bid_id: UUID
    auction_id: UUID
    bidder_id: UUID
    amount: Decimal
    is_automatic: bool
    sequence: int
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}


class OutbidEvent(BaseModel):
    """A leader being overtaken, used for outbid notifications."""

    auction_id: UUID
    outbid_bidder_id: UUID
    previous_amount: Decimal
    new_amount: Decimal
    new_leader_id: UUID


class ProxyResolution(BaseModel):
    """Outcome of running the proxy-bid resolver after a bid landed."""

    auction_id: UUID
    automatic_bids: list[BidRecord] = []
    outbid_events: list[OutbidEvent] = []
    leader_id: UUID
    final_price: Decimal
    bid_count: int
    iterations: int = 0


class BidResult(BaseModel):
    """Schema for bid placement response."""

    auction_id: UUID
    bid: BidRecord
    price: Decimal
    bid_count: int
    leader_id: UUID
    end_time: datetime
    automatic_bids: list[BidRecord] = []


class BidHistoryResponse(BaseModel):
    """Schema for bid history response."""

    bids: list[BidRecord]
    total: int


class BuyNowResult(BaseModel):
    """Schema for buy-now response."""

    auction_id: UUID
    order_id: UUID
    total_price: Decimal


class ProxyCeilingSet(BaseModel):
    """Schema for setting a proxy ceiling."""

    max_price: Decimal = Field(..., gt=0)


class CeilingRecord(BaseModel):
    """A standing proxy ceiling."""

    ceiling_id: UUID | None = None
    auction_id: UUID
    bidder_id: UUID
    max_price: Decimal
    created_at: datetime

    model_config = {"from_attributes": True, "frozen": True}


class ProxyCeilingRemoved(BaseModel):
    removed: bool
