"""Pytest configuration and fixtures for testing."""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from auctionhouse.models import Auction, AuctionStatus, Order, OrderStatus, ProxyCeiling
from auctionhouse.schemas.bid import CeilingRecord

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _fill_server_defaults(obj) -> None:
    """Stand-in for what INSERT ... RETURNING would populate on flush."""
    now = datetime.now(timezone.utc)
    for column in obj.__table__.columns:
        if getattr(obj, column.key, None) is not None:
            continue
        if column.primary_key:
            setattr(obj, column.key, uuid4())
        elif column.key in ("created_at", "updated_at"):
            setattr(obj, column.key, now)
        elif column.default is not None and column.default.is_scalar:
            setattr(obj, column.key, column.default.arg)


def result_of(scalar=None, scalars=None, rows=None, rowcount: int = 0) -> MagicMock:
    """Build a mock SQLAlchemy Result."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalar_one.return_value = scalar
    result.scalars.return_value.all.return_value = list(scalars or [])
    result.all.return_value = list(rows or [])
    result.one_or_none.return_value = rows[0] if rows else None
    result.rowcount = rowcount
    return result


# Mock database session fixture
@pytest.fixture
def mock_db() -> AsyncMock:
    """Create a mock AsyncSession that records added objects."""
    db = AsyncMock()
    db.added = []

    def add(obj):
        db.added.append(obj)

    async def flush():
        for obj in db.added:
            _fill_server_defaults(obj)

    db.add = MagicMock(side_effect=add)
    db.flush = AsyncMock(side_effect=flush)
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.execute = AsyncMock(return_value=result_of())
    return db


# Mock Redis client fixture
@pytest.fixture
def mock_redis() -> MagicMock:
    """Create a mock Redis client with a pipeline."""
    redis = MagicMock()
    redis.hgetall = AsyncMock(return_value={})
    redis.delete = AsyncMock(return_value=1)

    # Commands are queued synchronously; only execute() is awaited
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[1, 1, True])
    redis.pipeline.return_value = pipe
    redis.pipe = pipe
    return redis


@pytest.fixture
def seller_id() -> uuid.UUID:
    return uuid4()


@pytest.fixture
def make_auction(seller_id):
    """Factory for an active auction ending in an hour."""

    def factory(**overrides) -> Auction:
        now = datetime.now(timezone.utc)
        values = dict(
            auction_id=uuid4(),
            seller_id=seller_id,
            title="Test Auction",
            start_price=Decimal("10000"),
            current_price=Decimal("10000"),
            step_price=Decimal("1000"),
            buy_now_price=None,
            status=AuctionStatus.ACTIVE.value,
            start_time=now - timedelta(hours=1),
            end_time=now + timedelta(hours=1),
            bid_count=0,
            auto_extend=False,
            requires_bid_approval=False,
            allow_unrated_bidders=True,
            created_at=now - timedelta(hours=1),
            updated_at=now - timedelta(hours=1),
        )
        values.update(overrides)
        return Auction(**values)

    return factory


@pytest.fixture
def make_order(seller_id):
    """Factory for an order in a given status."""

    def factory(status: str = OrderStatus.AWAITING_PAYMENT_DETAILS.value, **overrides) -> Order:
        now = datetime.now(timezone.utc)
        values = dict(
            order_id=uuid4(),
            auction_id=uuid4(),
            seller_id=seller_id,
            buyer_id=uuid4(),
            total_price=Decimal("12000"),
            status=status,
            cancel_reason=None,
            created_at=now,
            updated_at=now,
        )
        values.update(overrides)
        return Order(**values)

    return factory


def make_ceiling_record(
    bidder_id: uuid.UUID, max_price, minute: int = 0, auction_id: uuid.UUID | None = None
) -> CeilingRecord:
    return CeilingRecord(
        auction_id=auction_id or uuid4(),
        bidder_id=bidder_id,
        max_price=Decimal(str(max_price)),
        created_at=T0 + timedelta(minutes=minute),
    )


def make_ceiling_row(auction_id: uuid.UUID, bidder_id: uuid.UUID, max_price, minute: int = 0) -> ProxyCeiling:
    return ProxyCeiling(
        ceiling_id=uuid4(),
        auction_id=auction_id,
        bidder_id=bidder_id,
        max_price=Decimal(str(max_price)),
        created_at=T0 + timedelta(minutes=minute),
    )
