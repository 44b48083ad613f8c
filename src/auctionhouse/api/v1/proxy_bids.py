"""Proxy-bid ceiling endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from auctionhouse.api.deps import CurrentUserId, ProxyBidServiceDep
from auctionhouse.schemas.bid import CeilingRecord, ProxyCeilingRemoved, ProxyCeilingSet

router = APIRouter()


@router.put("/{auction_id}/proxy-bid", response_model=CeilingRecord)
async def set_proxy_ceiling(
    auction_id: UUID,
    data: ProxyCeilingSet,
    current_user_id: CurrentUserId,
    proxy_service: ProxyBidServiceDep,
):
    """Create or replace the caller's ceiling. Takes effect on the next bid."""
    return await proxy_service.set_ceiling(auction_id, current_user_id, data.max_price)


@router.delete("/{auction_id}/proxy-bid", response_model=ProxyCeilingRemoved)
async def remove_proxy_ceiling(
    auction_id: UUID,
    current_user_id: CurrentUserId,
    proxy_service: ProxyBidServiceDep,
):
    removed = await proxy_service.remove_ceiling(auction_id, current_user_id)
    return ProxyCeilingRemoved(removed=removed)


@router.get("/{auction_id}/proxy-bid", response_model=CeilingRecord)
async def get_proxy_ceiling(
    auction_id: UUID,
    current_user_id: CurrentUserId,
    proxy_service: ProxyBidServiceDep,
):
    ceiling = await proxy_service.get_ceiling(auction_id, current_user_id)
    if ceiling is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No proxy ceiling set",
        )
    return ceiling
