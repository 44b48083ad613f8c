"""Redis service for auction snapshot caching and event publication."""

import json
from typing import Any

from redis.asyncio import Redis

OUTBOX_KEY = "notifications:outbox"
OUTBOX_MAX_LENGTH = 10000


class RedisService:
    """Service class for Redis operations used by the auction core."""

    def __init__(self, redis: Redis):
        """Initialize Redis service with a Redis client.

        Args:
            redis: Async Redis client instance
        """
        self.redis = redis

    # ==================== Auction Cache Operations ====================

    async def cache_auction(
        self, auction_id: str, data: dict[str, Any], ttl: int | None = None
    ) -> None:
        """Cache an auction snapshot in a Redis Hash.

        Key pattern: auction:{auction_id}

        Args:
            auction_id: Auction UUID string
            data: Snapshot fields (None values are skipped, the rest stringified)
            ttl: Optional TTL in seconds
        """
        key = f"auction:{auction_id}"
        string_data = {k: str(v) for k, v in data.items() if v is not None}
        pipe = self.redis.pipeline()
        pipe.delete(key)
        pipe.hset(key, mapping=string_data)
        if ttl is not None:
            pipe.expire(key, ttl)
        await pipe.execute()

    async def get_cached_auction(self, auction_id: str) -> dict[str, str] | None:
        """Get a cached auction snapshot.

        Args:
            auction_id: Auction UUID string

        Returns:
            Snapshot fields or None if not cached
        """
        key = f"auction:{auction_id}"
        data = await self.redis.hgetall(key)
        return data if data else None

    async def invalidate_auction_cache(self, auction_id: str) -> bool:
        """Invalidate (delete) the cached auction snapshot.

        Returns:
            True if cache was deleted, False if it didn't exist
        """
        key = f"auction:{auction_id}"
        result = await self.redis.delete(key)
        return result > 0

    # ==================== Event Operations ====================

    async def publish_event(self, channel: str, event: dict[str, Any]) -> int:
        """Publish an event and append it to the notification outbox.

        The outbox list is what the mailer worker drains; the pub/sub channel
        feeds live listeners.

        Args:
            channel: Pub/sub channel name
            event: JSON-serializable payload

        Returns:
            Number of live subscribers that received the message
        """
        payload = json.dumps(event, default=str)
        pipe = self.redis.pipeline()
        pipe.publish(channel, payload)
        pipe.lpush(OUTBOX_KEY, payload)
        pipe.ltrim(OUTBOX_KEY, 0, OUTBOX_MAX_LENGTH - 1)
        results = await pipe.execute()
        return int(results[0])
