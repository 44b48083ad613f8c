"""Bid and proxy-ceiling models."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from auctionhouse.core.database import Base

if TYPE_CHECKING:
    from auctionhouse.models.auction import Auction


class Bid(Base):
    """An immutable bid record, manual or placed by the proxy resolver."""

    __tablename__ = "bids"

    bid_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auctions.auction_id"),
        nullable=False,
    )
    bidder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        nullable=False,
    )
    is_automatic: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    # Auction bid_count right after this row was inserted
    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    auction: Mapped["Auction"] = relationship("Auction", back_populates="bids")

    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_bid_amount_positive"),
        Index("uq_bids_auction_sequence", "auction_id", "sequence", unique=True),
        Index("idx_bids_auction_amount", "auction_id", "amount"),
        Index("idx_bids_bidder", "bidder_id"),
    )


class ProxyCeiling(Base):
    """Standing "bid on my behalf up to max_price" instruction."""

    __tablename__ = "proxy_ceilings"

    ceiling_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auctions.auction_id"),
        nullable=False,
    )
    bidder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )
    max_price: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint("max_price > 0", name="chk_ceiling_max_price_positive"),
        # Unique constraint enables ON CONFLICT upserts per (auction, bidder)
        Index("uq_proxy_ceilings_auction_bidder", "auction_id", "bidder_id", unique=True),
    )
