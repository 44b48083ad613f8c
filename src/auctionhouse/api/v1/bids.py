"""Bidding API endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from auctionhouse.api.deps import BidServiceDep, CurrentUserId, OrderServiceDep
from auctionhouse.schemas.auction import AuctionResponse
from auctionhouse.schemas.bid import BidCreate, BidHistoryResponse, BidResult, BuyNowResult
from auctionhouse.schemas.order import OrderRecord

router = APIRouter()


@router.get("/{auction_id}", response_model=AuctionResponse)
async def get_auction(auction_id: UUID, bid_service: BidServiceDep):
    """Auction state with the current leader and minimum next bid."""
    auction = await bid_service.get_auction(auction_id)
    if auction is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Auction not found",
        )
    return auction


@router.post("/{auction_id}/bids", response_model=BidResult, status_code=status.HTTP_201_CREATED)
async def submit_bid(
    auction_id: UUID,
    bid_data: BidCreate,
    current_user_id: CurrentUserId,
    bid_service: BidServiceDep,
):
    """Place a bid. Standing proxy ceilings answer it in the same transaction."""
    return await bid_service.submit_bid(auction_id, current_user_id, bid_data.amount)


@router.get("/{auction_id}/bids", response_model=BidHistoryResponse)
async def get_bid_history(
    auction_id: UUID,
    bid_service: BidServiceDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    """Bid history for an auction, newest first."""
    bids, total = await bid_service.get_bid_history(auction_id, limit=limit, offset=skip)
    return BidHistoryResponse(bids=bids, total=total)


@router.post("/{auction_id}/buy-now", response_model=BuyNowResult, status_code=status.HTTP_201_CREATED)
async def buy_now(
    auction_id: UUID,
    current_user_id: CurrentUserId,
    bid_service: BidServiceDep,
):
    return await bid_service.buy_now(auction_id, current_user_id)


@router.post("/{auction_id}/order", response_model=OrderRecord)
async def ensure_order(
    auction_id: UUID,
    current_user_id: CurrentUserId,
    order_service: OrderServiceDep,
):
    """Create the winner's order for a closed auction, or return the existing one."""
    order = await order_service.ensure_order(auction_id)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Auction is not closed or has no winning bid",
        )
    return order
