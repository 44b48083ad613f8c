"""Reset database to empty state.

Clears all rows from the order, gate, bid, auction and user tables (children
first) and flushes Redis.

Usage:
    python -m scripts.reset_db
"""

import asyncio

from redis.exceptions import RedisError
from sqlalchemy import text

from auctionhouse.core.database import async_session_maker, engine
from auctionhouse.core.redis import close_redis, get_redis

# Delete order respects foreign keys
TABLES = [
    "ratings",
    "order_chats",
    "order_shipments",
    "order_invoices",
    "orders",
    "bid_rejections",
    "bid_requests",
    "proxy_ceilings",
    "bids",
    "auctions",
    "users",
]


async def reset_database():
    """Clear all data from the database."""
    print("=" * 60)
    print("Resetting database to empty state...")
    print("=" * 60)

    async with async_session_maker() as session:
        for table in TABLES:
            result = await session.execute(text(f"DELETE FROM {table}"))
            print(f"  Deleted {result.rowcount} rows from {table}")

        await session.commit()
        print("\nDatabase cleared successfully!")


async def reset_redis():
    """Clear cached auction snapshots and the notification outbox."""
    print("\nResetting Redis...")

    try:
        redis = await get_redis()
        await redis.flushdb()
        print("  Redis flushed successfully!")
    except RedisError as e:
        print(f"  Warning: Could not clear Redis: {e}")
        print("  (This is OK if Redis is not running locally)")
    finally:
        await close_redis()


async def main():
    await reset_database()
    await reset_redis()

    print("\n" + "=" * 60)
    print("Reset complete!")
    print("=" * 60)
    print("\nTo re-seed the database, run:")
    print("  python -m scripts.seed_data")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
