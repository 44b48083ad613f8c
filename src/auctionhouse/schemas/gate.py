"""Bid gate schemas: approval requests, rejections and eligibility."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from auctionhouse.core.exceptions import BidErrorCode, GateErrorCode


class Eligibility(BaseModel):
    """Result of asking whether a bidder may bid on an auction."""

    allowed: bool
    reason: BidErrorCode | GateErrorCode | None = None
    rating_percent: int | None = None

    @classmethod
    def ok(cls, rating_percent: int | None = None) -> "Eligibility":
        return cls(allowed=True, rating_percent=rating_percent)

    @classmethod
    def forbidden(
        cls, reason: BidErrorCode | GateErrorCode, rating_percent: int | None = None
    ) -> "Eligibility":
        return cls(allowed=False, reason=reason, rating_percent=rating_percent)


class BidRequestCreate(BaseModel):
    message: str | None = Field(None, max_length=2000)


class BidRequestRecord(BaseModel):
    request_id: UUID
    auction_id: UUID
    bidder_id: UUID
    status: str
    message: str | None
    seller_note: str | None
    approved_by: UUID | None
    responded_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "frozen": True}


class BidRequestResult(BaseModel):
    """Outcome of submitting a bid request."""

    request: BidRequestRecord
    status: str
    created: bool = False
    updated: bool = False


class BidRequestResolve(BaseModel):
    action: Literal["approve", "approved", "reject", "rejected"]
    note: str | None = Field(None, max_length=2000)


class SellerBidRequest(BaseModel):
    """Bid request as listed to the seller, with bidder reputation."""

    request_id: UUID
    auction_id: UUID
    auction_title: str
    bidder_id: UUID
    bidder_name: str | None
    bidder_rating_pos: int
    bidder_rating_neg: int
    status: str
    message: str | None
    seller_note: str | None
    created_at: datetime
    responded_at: datetime | None


class RejectBidderCreate(BaseModel):
    bidder_id: UUID
    reason: str | None = Field(None, max_length=2000)


class RejectionResult(BaseModel):
    auction_id: UUID
    bidder_id: UUID
    already_rejected: bool = False
    was_highest_bidder: bool = False
    previous_price: Decimal | None = None
    current_price: Decimal | None = None
    new_leader_id: UUID | None = None


class UnrejectResult(BaseModel):
    auction_id: UUID
    bidder_id: UUID
    removed: bool


class RejectedBidder(BaseModel):
    rejection_id: UUID
    bidder_id: UUID
    reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
