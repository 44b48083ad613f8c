"""Auction model (the "product" of the listing layer) carrying live price state."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from auctionhouse.core.database import Base
from auctionhouse.models.base import TimestampMixin

if TYPE_CHECKING:
    from auctionhouse.models.bid import Bid


class AuctionStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ENDED = "ended"
    REMOVED = "removed"


class Auction(Base, TimestampMixin):
    """A timed auction. current_price and bid_count only move under a row lock."""

    __tablename__ = "auctions"

    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    start_price: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        nullable=False,
    )
    current_price: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        nullable=False,
    )
    step_price: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        nullable=False,
    )
    buy_now_price: Mapped[Decimal | None] = mapped_column(
        Numeric(20, 2),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AuctionStatus.DRAFT.value,
    )
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    bid_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    auto_extend: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    requires_bid_approval: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    allow_unrated_bidders: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    # Relationships
    bids: Mapped[List["Bid"]] = relationship(
        "Bid", back_populates="auction", order_by="Bid.sequence"
    )

    __table_args__ = (
        CheckConstraint("start_price >= 0", name="chk_auction_start_price"),
        CheckConstraint("current_price >= start_price", name="chk_auction_current_price"),
        CheckConstraint("step_price >= 0", name="chk_auction_step_price"),
        CheckConstraint("bid_count >= 0", name="chk_auction_bid_count"),
        CheckConstraint("end_time > start_time", name="chk_auction_time"),
        Index("idx_auctions_status_end", "status", "end_time"),
        Index("idx_auctions_seller", "seller_id"),
    )
