"""Bid gate endpoints: eligibility, approval requests and bidder rejections."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query, status

from auctionhouse.api.deps import AuctionCacheDep, CurrentUserId, GateServiceDep
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

router = APIRouter()


@router.get("/auctions/{auction_id}/eligibility", response_model=Eligibility)
async def check_eligibility(
    auction_id: UUID,
    current_user_id: CurrentUserId,
    gate: GateServiceDep,
):
    """Whether the caller may bid on this auction, and why not."""
    return await gate.can_bid(auction_id, current_user_id)


@router.post("/auctions/{auction_id}/bid-requests", response_model=BidRequestResult)
async def submit_bid_request(
    auction_id: UUID,
    data: BidRequestCreate,
    current_user_id: CurrentUserId,
    gate: GateServiceDep,
):
    return await gate.submit_bid_request(auction_id, current_user_id, data.message)


@router.get("/bid-requests", response_model=list[SellerBidRequest])
async def list_bid_requests(
    current_user_id: CurrentUserId,
    gate: GateServiceDep,
    request_status: Literal["pending", "approved", "rejected"] | None = Query(None, alias="status"),
):
    """Bid requests on the caller's auctions."""
    return await gate.list_bid_requests_for_seller(current_user_id, request_status)


@router.post("/bid-requests/{request_id}/resolve", response_model=BidRequestRecord)
async def resolve_bid_request(
    request_id: UUID,
    data: BidRequestResolve,
    current_user_id: CurrentUserId,
    gate: GateServiceDep,
):
    return await gate.resolve_bid_request(request_id, current_user_id, data.action, data.note)


@router.post(
    "/auctions/{auction_id}/rejections",
    response_model=RejectionResult,
    status_code=status.HTTP_201_CREATED,
)
async def reject_bidder(
    auction_id: UUID,
    data: RejectBidderCreate,
    current_user_id: CurrentUserId,
    gate: GateServiceDep,
    cache: AuctionCacheDep,
):
    """Exclude a bidder. Rolls the price back if they were leading."""
    result = await gate.reject_bidder(auction_id, data.bidder_id, current_user_id, data.reason)
    if result.was_highest_bidder and cache is not None:
        await cache.invalidate(auction_id)
    return result


@router.delete("/auctions/{auction_id}/rejections/{bidder_id}", response_model=UnrejectResult)
async def unreject_bidder(
    auction_id: UUID,
    bidder_id: UUID,
    current_user_id: CurrentUserId,
    gate: GateServiceDep,
):
    return await gate.unreject_bidder(auction_id, bidder_id, current_user_id)


@router.get("/auctions/{auction_id}/rejections", response_model=list[RejectedBidder])
async def list_rejected_bidders(
    auction_id: UUID,
    current_user_id: CurrentUserId,
    gate: GateServiceDep,
):
    return await gate.list_rejected_bidders(auction_id)
