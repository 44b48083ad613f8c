"""Shared ledger queries: row locks, leader lookup and time helpers."""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from auctionhouse.core.exceptions import BidError, BidErrorCode
from auctionhouse.models.auction import Auction, AuctionStatus
from auctionhouse.models.bid import Bid, ProxyCeiling
from auctionhouse.models.gate import BidRejection
from auctionhouse.models.order import Order


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def parse_amount(value) -> Decimal:
    """Coerce a bid amount to a positive whole Decimal.

    Raises:
        BidError: INVALID_BID_INPUT for anything else
    """
    if value is None or isinstance(value, bool):
        raise BidError(BidErrorCode.INVALID_BID_INPUT, amount=value)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise BidError(BidErrorCode.INVALID_BID_INPUT, amount=value)
    if not amount.is_finite() or amount <= 0 or amount != amount.to_integral_value():
        raise BidError(BidErrorCode.INVALID_BID_INPUT, amount=value)
    return amount


def minimum_next_bid(auction) -> Decimal:
    """current + step once bids exist, else the start price."""
    if auction.bid_count > 0:
        return auction.current_price + auction.step_price
    return auction.start_price


def is_auction_open(auction: Auction, now: datetime | None = None) -> bool:
    now = now or utcnow()
    return auction.status == AuctionStatus.ACTIVE.value and as_utc(auction.end_time) > now


def is_auction_closed(auction: Auction, now: datetime | None = None) -> bool:
    """An auction is closed once it is marked ended or its end time passed."""
    if auction.status == AuctionStatus.REMOVED.value:
        return False
    if auction.status == AuctionStatus.ENDED.value:
        return True
    now = now or utcnow()
    return auction.status == AuctionStatus.ACTIVE.value and as_utc(auction.end_time) <= now


async def get_auction(db: AsyncSession, auction_id: UUID) -> Auction | None:
    result = await db.execute(select(Auction).where(Auction.auction_id == auction_id))
    return result.scalar_one_or_none()


async def lock_auction(db: AsyncSession, auction_id: UUID) -> Auction | None:
    """SELECT ... FOR UPDATE on the auction row.

    populate_existing makes sure an identity-mapped instance is refreshed with
    the values read under the lock.
    """
    result = await db.execute(
        select(Auction)
        .where(Auction.auction_id == auction_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def lock_order(db: AsyncSession, order_id: UUID) -> Order | None:
    result = await db.execute(
        select(Order)
        .where(Order.order_id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _not_rejected(auction_id: UUID):
    return ~select(BidRejection.rejection_id).where(
        and_(
            BidRejection.auction_id == auction_id,
            BidRejection.bidder_id == Bid.bidder_id,
        )
    ).exists()


async def get_highest_bid(
    db: AsyncSession, auction_id: UUID, exclude_bidder_id: UUID | None = None
) -> Bid | None:
    """Highest bid by amount, earliest sequence on ties, ignoring rejected bidders.

    Args:
        db: Session
        auction_id: Auction UUID
        exclude_bidder_id: Optional bidder to leave out of the search

    Returns:
        The leading bid, or None if nobody eligible has bid
    """
    conditions = [Bid.auction_id == auction_id, _not_rejected(auction_id)]
    if exclude_bidder_id is not None:
        conditions.append(Bid.bidder_id != exclude_bidder_id)

    result = await db.execute(
        select(Bid)
        .where(and_(*conditions))
        .order_by(Bid.amount.desc(), Bid.sequence.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def load_ceilings(db: AsyncSession, auction_id: UUID) -> list[ProxyCeiling]:
    """All ceilings of non-rejected bidders, highest max first, oldest first on ties."""
    rejected = select(BidRejection.bidder_id).where(BidRejection.auction_id == auction_id)
    result = await db.execute(
        select(ProxyCeiling)
        .where(
            and_(
                ProxyCeiling.auction_id == auction_id,
                ProxyCeiling.bidder_id.not_in(rejected),
            )
        )
        .order_by(ProxyCeiling.max_price.desc(), ProxyCeiling.created_at.asc())
    )
    return list(result.scalars().all())
