"""Two-tier auction snapshot cache.

1. Local in-memory ``TTLCache`` (owned by the cache instance, one per app)
2. Redis hash (shared between workers)
3. Database on miss

Writers call ``invalidate`` after commit; the cache never serves a snapshot
older than the last invalidation on this process.
"""

import logging
from uuid import UUID

from cachetools import TTLCache
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from auctionhouse.core.config import settings
from auctionhouse.schemas.auction import AuctionSnapshot
from auctionhouse.services.ledger import get_auction
from auctionhouse.services.redis_service import RedisService

logger = logging.getLogger(__name__)


class AuctionCache:
    """Read-through cache of ``AuctionSnapshot`` values."""

    def __init__(
        self,
        redis_service: RedisService | None = None,
        maxsize: int = settings.AUCTION_CACHE_MAXSIZE,
        ttl: int = settings.AUCTION_CACHE_TTL,
    ):
        self.redis_service = redis_service
        self.ttl = ttl
        self._local: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)

    def __contains__(self, auction_id: UUID) -> bool:
        return str(auction_id) in self._local

    async def get(self, auction_id: UUID) -> AuctionSnapshot | None:
        key = str(auction_id)
        cached = self._local.get(key)
        if cached is not None:
            return cached

        if self.redis_service is None:
            return None

        try:
            data = await self.redis_service.get_cached_auction(key)
        except RedisError as e:
            logger.warning(f"Auction cache read failed for {key}: {e}")
            return None
        if not data:
            return None

        snapshot = AuctionSnapshot.model_validate(data)
        self._local[key] = snapshot
        return snapshot

    async def put(self, snapshot: AuctionSnapshot) -> None:
        key = str(snapshot.auction_id)
        self._local[key] = snapshot
        if self.redis_service is None:
            return
        try:
            await self.redis_service.cache_auction(
                key, snapshot.model_dump(mode="json"), ttl=self.ttl
            )
        except RedisError as e:
            logger.warning(f"Auction cache write failed for {key}: {e}")

    async def invalidate(self, auction_id: UUID) -> None:
        """Drop the snapshot from both tiers."""
        key = str(auction_id)
        self._local.pop(key, None)
        if self.redis_service is None:
            return
        try:
            await self.redis_service.invalidate_auction_cache(key)
        except RedisError as e:
            logger.warning(f"Auction cache invalidation failed for {key}: {e}")

    async def get_or_load(self, db: AsyncSession, auction_id: UUID) -> AuctionSnapshot | None:
        """Return the cached snapshot, loading it from the database on a miss.

        Args:
            db: Session used for the fallback read
            auction_id: Auction UUID

        Returns:
            Snapshot, or None if the auction does not exist
        """
        snapshot = await self.get(auction_id)
        if snapshot is not None:
            return snapshot

        auction = await get_auction(db, auction_id)
        if auction is None:
            return None

        snapshot = AuctionSnapshot.model_validate(auction)
        await self.put(snapshot)
        return snapshot
