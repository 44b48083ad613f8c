"""Auction snapshot schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class AuctionSnapshot(BaseModel):
    """Read-only view of an auction's pricing state, built at the storage boundary."""

    auction_id: UUID
    seller_id: UUID
    title: str
    start_price: Decimal
    current_price: Decimal
    step_price: Decimal
    buy_now_price: Decimal | None = None
    status: str
    start_time: datetime
    end_time: datetime
    bid_count: int
    auto_extend: bool = False
    requires_bid_approval: bool = False
    allow_unrated_bidders: bool = True

    model_config = {"from_attributes": True, "frozen": True}


class AuctionResponse(AuctionSnapshot):
    """Auction snapshot plus the current leader, for API responses."""

    leader_id: UUID | None = None
    minimum_bid: Decimal
