"""Closing service for auctions whose end time has passed."""

import asyncio
import logging
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auctionhouse.core.config import settings
from auctionhouse.middleware.metrics import record_auction_closed
from auctionhouse.models.auction import Auction, AuctionStatus
from auctionhouse.schemas.order import OrderRecord
from auctionhouse.services.auction_cache import AuctionCache
from auctionhouse.services.ledger import is_auction_closed, lock_auction, utcnow
from auctionhouse.services.notification_service import NotificationService
from auctionhouse.services.order_service import OrderService

logger = logging.getLogger(__name__)


class AuctionClosingService:
    """Service class for closing ended auctions and opening their orders."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationService | None = None,
        cache: AuctionCache | None = None,
    ):
        self.db = db
        self.notifier = notifier
        self.cache = cache

    async def get_auctions_to_close(self, limit: int = 100) -> list[UUID]:
        """Get active auctions whose end time has passed.

        Returns:
            Auction ids, earliest end first
        """
        result = await self.db.execute(
            select(Auction.auction_id)
            .where(
                and_(
                    Auction.status == AuctionStatus.ACTIVE.value,
                    Auction.end_time <= utcnow(),
                )
            )
            .order_by(Auction.end_time.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def check_auction_needs_closing(self, auction_id: UUID) -> bool:
        """Check if an auction is past its end time but still marked active."""
        result = await self.db.execute(select(Auction).where(Auction.auction_id == auction_id))
        auction = result.scalar_one_or_none()
        if not auction:
            return False
        return auction.status == AuctionStatus.ACTIVE.value and is_auction_closed(auction)

    async def close_auction(self, auction_id: UUID) -> OrderRecord | None:
        """Mark an auction ended and ensure its order exists.

        A bid that auto-extended the auction after it was selected leaves it
        open; the next run picks it up again if needed.

        Args:
            auction_id: Auction UUID

        Returns:
            The winner's order, or None when nobody bid or the auction is still open
        """
        try:
            auction = await lock_auction(self.db, auction_id)
            if auction is None or auction.status != AuctionStatus.ACTIVE.value:
                await self.db.rollback()
                return None
            if not is_auction_closed(auction):
                await self.db.rollback()
                return None

            auction.status = AuctionStatus.ENDED.value
            final_price = auction.current_price
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        order = await OrderService(self.db, notifier=self.notifier).ensure_order(auction_id)

        record_auction_closed(order is not None)
        logger.info(
            "Auction closed",
            extra={
                "auction_id": auction_id,
                "price": final_price,
                "order_id": order.order_id if order else None,
            },
        )
        if self.cache is not None:
            await self.cache.invalidate(auction_id)
        if self.notifier is not None:
            await self.notifier.auction_closed(
                auction_id,
                final_price,
                order.buyer_id if order else None,
                order.order_id if order else None,
            )
        return order

    async def close_due_auctions(self) -> int:
        """Close every auction that is due. Returns how many were closed."""
        closed = 0
        for auction_id in await self.get_auctions_to_close():
            try:
                await self.close_auction(auction_id)
                closed += 1
            except Exception as e:
                logger.error(
                    f"Failed to close auction {auction_id}: {e}",
                    extra={"auction_id": auction_id},
                )
        return closed


async def run_closer(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: NotificationService | None = None,
    cache: AuctionCache | None = None,
    interval: float = settings.AUCTION_CLOSE_INTERVAL_SECONDS,
) -> None:
    """Background loop closing due auctions every ``interval`` seconds.

    Runs until cancelled.
    """
    while True:
        try:
            async with session_factory() as session:
                closed = await AuctionClosingService(session, notifier, cache).close_due_auctions()
            if closed:
                logger.info("Closer run finished", extra={"count": closed})
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Closer run failed: {e}")
        await asyncio.sleep(interval)
