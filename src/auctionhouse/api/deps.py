"""API dependencies for caller identity, database access and services."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auctionhouse.core.database import get_db
from auctionhouse.core.redis import get_redis
from auctionhouse.core.security import decode_access_token
from auctionhouse.services.auction_cache import AuctionCache
from auctionhouse.services.bid_service import BidService
from auctionhouse.services.gate_service import BidGateService
from auctionhouse.services.notification_service import NotificationService
from auctionhouse.services.order_service import OrderService
from auctionhouse.services.proxy_bid_service import ProxyBidService
from auctionhouse.services.redis_service import RedisService

security = HTTPBearer()


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """Resolve the caller's user id from the bearer token's ``sub`` claim.

    Raises:
        HTTPException: 401 if the token is invalid or carries no usable id
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return UUID(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_redis_service() -> RedisService:
    """Get RedisService instance with shared Redis connection pool."""
    redis = await get_redis()
    return RedisService(redis)


def get_auction_cache(request: Request) -> AuctionCache | None:
    """The application's auction cache, created in the lifespan handler."""
    return getattr(request.app.state, "auction_cache", None)


def get_notifier(
    redis_service: Annotated[RedisService, Depends(get_redis_service)],
) -> NotificationService:
    return NotificationService(redis_service)


# Type aliases for cleaner dependency injection
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
RedisServiceDep = Annotated[RedisService, Depends(get_redis_service)]
AuctionCacheDep = Annotated[AuctionCache | None, Depends(get_auction_cache)]
NotifierDep = Annotated[NotificationService, Depends(get_notifier)]


async def get_gate_service(db: DbSession) -> BidGateService:
    return BidGateService(db)


GateServiceDep = Annotated[BidGateService, Depends(get_gate_service)]


async def get_proxy_bid_service(db: DbSession, gate: GateServiceDep) -> ProxyBidService:
    return ProxyBidService(db, gate=gate)


ProxyBidServiceDep = Annotated[ProxyBidService, Depends(get_proxy_bid_service)]


async def get_bid_service(
    db: DbSession,
    cache: AuctionCacheDep,
    notifier: NotifierDep,
    gate: GateServiceDep,
    proxy: ProxyBidServiceDep,
) -> BidService:
    """Get BidService instance with injected dependencies."""
    return BidService(db, cache=cache, notifier=notifier, gate=gate, proxy=proxy)


async def get_order_service(db: DbSession, notifier: NotifierDep) -> OrderService:
    return OrderService(db, notifier=notifier)


BidServiceDep = Annotated[BidService, Depends(get_bid_service)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
