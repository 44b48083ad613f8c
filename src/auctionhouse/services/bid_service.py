"""Bid service for bidding operations."""

import logging
import time
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from auctionhouse.core.config import settings
from auctionhouse.core.exceptions import AuctionHouseError, BidError, BidErrorCode
from auctionhouse.middleware.metrics import record_bid, record_proxy_resolution
from auctionhouse.models.auction import Auction, AuctionStatus
from auctionhouse.models.bid import Bid
from auctionhouse.models.order import Order, OrderStatus
from auctionhouse.schemas.auction import AuctionResponse, AuctionSnapshot
from auctionhouse.schemas.bid import BidRecord, BidResult, BuyNowResult, ProxyResolution
from auctionhouse.services.auction_cache import AuctionCache
from auctionhouse.services.gate_service import BidGateService
from auctionhouse.services.ledger import (
    as_utc,
    get_auction,
    get_highest_bid,
    lock_auction,
    minimum_next_bid,
    parse_amount,
    utcnow,
)
from auctionhouse.services.notification_service import NotificationService
from auctionhouse.services.proxy_bid_service import ProxyBidService

logger = logging.getLogger(__name__)


def check_bid_amount(auction: Auction | AuctionSnapshot, amount: Decimal) -> None:
    """Enforce the minimum next bid and the step grid.

    The grid is anchored at the current price: (amount - current) must be a
    whole number of steps.

    Raises:
        BidError: BID_TOO_LOW or BID_STEP_MISMATCH
    """
    min_required = minimum_next_bid(auction)
    if amount < min_required:
        raise BidError(
            BidErrorCode.BID_TOO_LOW,
            auction_id=auction.auction_id,
            amount=amount,
            min_required=min_required,
        )
    step = auction.step_price
    if step > 0 and (amount - auction.current_price) % step != 0:
        raise BidError(
            BidErrorCode.BID_STEP_MISMATCH,
            auction_id=auction.auction_id,
            amount=amount,
            step=step,
        )


def extended_end_time(
    auction: Auction,
    now: datetime,
    threshold_minutes: int = settings.AUTO_EXTEND_THRESHOLD_MINUTES,
    extend_minutes: int = settings.AUTO_EXTEND_MINUTES,
) -> datetime | None:
    """New end time when a bid lands inside the auto-extend window, else None."""
    if not auction.auto_extend:
        return None
    end = as_utc(auction.end_time)
    if end <= now or end - now > timedelta(minutes=threshold_minutes):
        return None
    return end + timedelta(minutes=extend_minutes)


class BidService:
    """Service class for bid operations.

    Placement and proxy resolution share one transaction: the auction row is
    locked once and held until commit.
    """

    def __init__(
        self,
        db: AsyncSession,
        cache: AuctionCache | None = None,
        notifier: NotificationService | None = None,
        gate: BidGateService | None = None,
        proxy: ProxyBidService | None = None,
    ):
        self.db = db
        self.cache = cache
        self.notifier = notifier
        self.gate = gate or BidGateService(db)
        self.proxy = proxy or ProxyBidService(db, gate=self.gate)

    async def place_bid(self, auction_id: UUID, bidder_id: UUID, amount) -> BidResult:
        """Record a manual bid and resolve standing proxy ceilings.

        Amount ordering is not checked here; callers that accept bids from
        users go through ``submit_bid``.

        Args:
            auction_id: Auction UUID
            bidder_id: Bidder UUID
            amount: Positive whole amount

        Returns:
            Price, bid count and leader after resolution, with any automatic bids

        Raises:
            BidError: INVALID_BID_INPUT before any transaction, PRODUCT_NOT_FOUND
                if the auction row is gone
        """
        if not auction_id or not bidder_id:
            raise BidError(BidErrorCode.INVALID_BID_INPUT)
        amount = parse_amount(amount)
        return await self._run(auction_id, bidder_id, amount, validate=False)

    async def submit_bid(self, auction_id: UUID, bidder_id: UUID, amount) -> BidResult:
        """Validated bid entry point: gate, auction state, minimum and step checks.

        Raises:
            BidError: INVALID_BID_INPUT, PRODUCT_NOT_FOUND, AUCTION_NOT_ACTIVE,
                AUCTION_ENDED, CANNOT_BID_OWN_PRODUCT, BID_TOO_LOW, BID_STEP_MISMATCH
            GateError: BIDDER_REJECTED, APPROVAL_REQUIRED, RATING_TOO_LOW,
                UNRATED_NOT_ALLOWED
        """
        if not auction_id or not bidder_id:
            raise BidError(BidErrorCode.INVALID_BID_INPUT)
        amount = parse_amount(amount)
        start = time.perf_counter()
        try:
            result = await self._run(auction_id, bidder_id, amount, validate=True)
        except AuctionHouseError as e:
            record_bid(e.code.value)
            raise
        record_bid("accepted")
        logger.info(
            "Bid accepted",
            extra={
                "auction_id": auction_id,
                "bidder_id": bidder_id,
                "amount": amount,
                "price": result.price,
                "leader_id": result.leader_id,
                "took_ms": round((time.perf_counter() - start) * 1000, 1),
            },
        )
        return result

    async def _run(self, auction_id: UUID, bidder_id: UUID, amount: Decimal, validate: bool) -> BidResult:
        now = utcnow()
        try:
            auction = await lock_auction(self.db, auction_id)
            if auction is None:
                raise BidError(BidErrorCode.PRODUCT_NOT_FOUND, auction_id=auction_id)

            if validate:
                await self.gate.ensure_can_bid(auction, bidder_id, now)
                check_bid_amount(auction, amount)

            bid = self._record_bid(auction, bidder_id, amount, now)
            await self.db.flush()
            bid_record = BidRecord.model_validate(bid)

            new_end = extended_end_time(auction, now)
            if new_end is not None:
                auction.end_time = new_end
                logger.info(
                    "Auction auto-extended",
                    extra={"auction_id": auction_id, "status": new_end.isoformat()},
                )

            resolution = await self.proxy.resolve_locked(auction, amount, bidder_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        result = BidResult(
            auction_id=auction_id,
            bid=bid_record,
            price=auction.current_price,
            bid_count=auction.bid_count,
            leader_id=resolution.leader_id,
            end_time=auction.end_time,
            automatic_bids=resolution.automatic_bids,
        )
        await self._after_commit(auction_id, result, resolution)
        return result

    def _record_bid(self, auction: Auction, bidder_id: UUID, amount: Decimal, now: datetime) -> Bid:
        next_bid_count = auction.bid_count + 1
        bid = Bid(
            auction_id=auction.auction_id,
            bidder_id=bidder_id,
            amount=amount,
            is_automatic=False,
            sequence=next_bid_count,
            created_at=now,
        )
        self.db.add(bid)
        auction.current_price = amount
        auction.bid_count = next_bid_count
        return bid

    async def _after_commit(
        self,
        auction_id: UUID,
        result: BidResult,
        resolution: ProxyResolution,
    ) -> None:
        record_proxy_resolution(len(resolution.automatic_bids))
        if self.cache is not None:
            await self.cache.invalidate(auction_id)
        if self.notifier is None:
            return

        await self.notifier.bid_placed(result)
        await self.notifier.outbid(resolution.outbid_events)

    # ==================== Buy now ====================

    async def buy_now(self, auction_id: UUID, buyer_id: UUID) -> BuyNowResult:
        """End the auction at its buy-now price and open the order.

        Raises:
            BidError: INVALID_BID_INPUT, PRODUCT_NOT_FOUND, CANNOT_BID_OWN_PRODUCT,
                BUY_NOW_NOT_AVAILABLE, BUY_NOW_NOT_CONFIGURED, ALREADY_SOLD
            GateError: If the buyer is excluded, unapproved or below the rating bar
        """
        if not auction_id or not buyer_id:
            raise BidError(BidErrorCode.INVALID_BID_INPUT)

        now = utcnow()
        try:
            auction = await lock_auction(self.db, auction_id)
            if auction is None:
                raise BidError(BidErrorCode.PRODUCT_NOT_FOUND, auction_id=auction_id)
            if auction.seller_id == buyer_id:
                raise BidError(BidErrorCode.CANNOT_BID_OWN_PRODUCT, auction_id=auction_id)
            if auction.status != AuctionStatus.ACTIVE.value:
                raise BidError(BidErrorCode.BUY_NOW_NOT_AVAILABLE, auction_id=auction_id)

            price = auction.buy_now_price
            if price is None or price <= 0:
                raise BidError(BidErrorCode.BUY_NOW_NOT_CONFIGURED, auction_id=auction_id)
            if as_utc(auction.end_time) <= now or price < minimum_next_bid(auction):
                raise BidError(BidErrorCode.BUY_NOW_NOT_AVAILABLE, auction_id=auction_id)
            await self.gate.ensure_can_bid(auction, buyer_id, now)

            existing = await self.db.execute(
                select(Order.order_id).where(Order.auction_id == auction_id)
            )
            if existing.scalar_one_or_none() is not None:
                raise BidError(BidErrorCode.ALREADY_SOLD, auction_id=auction_id)

            self._record_bid(auction, buyer_id, price, now)
            auction.status = AuctionStatus.ENDED.value
            # end_time must stay after start_time
            auction.end_time = max(now, as_utc(auction.start_time) + timedelta(seconds=1))

            order = Order(
                auction_id=auction_id,
                seller_id=auction.seller_id,
                buyer_id=buyer_id,
                total_price=price,
                status=OrderStatus.AWAITING_PAYMENT_DETAILS.value,
            )
            self.db.add(order)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Auction bought out",
            extra={"auction_id": auction_id, "buyer_id": buyer_id, "order_id": order.order_id, "price": price},
        )
        if self.cache is not None:
            await self.cache.invalidate(auction_id)
        if self.notifier is not None:
            await self.notifier.auction_closed(auction_id, price, buyer_id, order.order_id)
        return BuyNowResult(auction_id=auction_id, order_id=order.order_id, total_price=price)

    # ==================== Reads ====================

    async def get_bid_history(self, auction_id: UUID, limit: int = 100, offset: int = 0) -> tuple[list[BidRecord], int]:
        """Bids for an auction, newest first.

        Returns:
            (page of bids, total count)
        """
        result = await self.db.execute(
            select(Bid)
            .where(Bid.auction_id == auction_id)
            .order_by(Bid.sequence.desc())
            .limit(limit)
            .offset(offset)
        )
        bids = [BidRecord.model_validate(b) for b in result.scalars().all()]

        total = await self.db.execute(
            select(func.count()).select_from(Bid).where(Bid.auction_id == auction_id)
        )
        return bids, total.scalar_one()

    async def get_highest_bidder(self, auction_id: UUID) -> UUID | None:
        bid = await get_highest_bid(self.db, auction_id)
        return bid.bidder_id if bid else None

    async def get_auction(self, auction_id: UUID) -> AuctionResponse | None:
        """Cached auction snapshot with the current leader and minimum next bid."""
        if self.cache is not None:
            snapshot = await self.cache.get_or_load(self.db, auction_id)
        else:
            auction = await get_auction(self.db, auction_id)
            snapshot = AuctionSnapshot.model_validate(auction) if auction else None
        if snapshot is None:
            return None

        return AuctionResponse(
            **snapshot.model_dump(),
            leader_id=await self.get_highest_bidder(auction_id),
            minimum_bid=minimum_next_bid(snapshot),
        )
