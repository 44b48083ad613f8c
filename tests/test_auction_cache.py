"""Tests for the two-tier auction snapshot cache."""

from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from auctionhouse.schemas.auction import AuctionSnapshot
from auctionhouse.services.auction_cache import AuctionCache

GET_AUCTION = "auctionhouse.services.auction_cache.get_auction"


@pytest.fixture
def redis_service():
    service = AsyncMock()
    service.get_cached_auction.return_value = None
    return service


class TestAuctionCache:
    """Test read-through and invalidation."""

    @pytest.mark.asyncio
    async def test_miss_loads_from_database_and_fills_both_tiers(self, mock_db, make_auction, redis_service):
        auction = make_auction()
        cache = AuctionCache(redis_service, ttl=30)

        with patch(GET_AUCTION, AsyncMock(return_value=auction)) as load:
            snapshot = await cache.get_or_load(mock_db, auction.auction_id)
            again = await cache.get_or_load(mock_db, auction.auction_id)

        assert snapshot.auction_id == auction.auction_id
        assert again is snapshot
        load.assert_awaited_once()
        assert auction.auction_id in cache
        redis_service.cache_auction.assert_awaited_once()
        assert redis_service.cache_auction.await_args.kwargs["ttl"] == 30

    @pytest.mark.asyncio
    async def test_redis_hit_skips_database(self, mock_db, make_auction, redis_service):
        auction = make_auction()
        data = AuctionSnapshot.model_validate(auction).model_dump(mode="json")
        redis_service.get_cached_auction.return_value = {k: str(v) for k, v in data.items() if v is not None}
        cache = AuctionCache(redis_service)

        with patch(GET_AUCTION, AsyncMock()) as load:
            snapshot = await cache.get_or_load(mock_db, auction.auction_id)

        assert snapshot.current_price == auction.current_price
        assert snapshot.auto_extend is False
        load.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalidate_drops_both_tiers(self, make_auction, redis_service):
        auction = make_auction()
        cache = AuctionCache(redis_service)
        await cache.put(AuctionSnapshot.model_validate(auction))

        await cache.invalidate(auction.auction_id)

        assert auction.auction_id not in cache
        redis_service.invalidate_auction_cache.assert_awaited_once_with(str(auction.auction_id))

    @pytest.mark.asyncio
    async def test_redis_failure_falls_back_to_database(self, mock_db, make_auction, redis_service):
        auction = make_auction()
        redis_service.get_cached_auction.side_effect = RedisConnectionError("down")
        redis_service.cache_auction.side_effect = RedisConnectionError("down")
        cache = AuctionCache(redis_service)

        with patch(GET_AUCTION, AsyncMock(return_value=auction)):
            snapshot = await cache.get_or_load(mock_db, auction.auction_id)

        assert snapshot.auction_id == auction.auction_id

    @pytest.mark.asyncio
    async def test_missing_auction(self, mock_db):
        cache = AuctionCache(None)

        with patch(GET_AUCTION, AsyncMock(return_value=None)):
            assert await cache.get_or_load(mock_db, "missing") is None
