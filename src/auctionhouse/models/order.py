"""Order fulfillment models: the order root and its append-only sub-records."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, SmallInteger, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from auctionhouse.core.database import Base
from auctionhouse.models.base import TimestampMixin


class OrderStatus(str, Enum):
    AWAITING_PAYMENT_DETAILS = "awaiting_payment_details"
    PAYMENT_CONFIRMED_AWAITING_DELIVERY = "payment_confirmed_awaiting_delivery"
    DELIVERY_CONFIRMED_READY_TO_RATE = "delivery_confirmed_ready_to_rate"
    TRANSACTION_COMPLETED = "transaction_completed"
    CANCELED_BY_SELLER = "canceled_by_seller"


class Order(Base, TimestampMixin):
    """Post-auction transaction between the winning bidder and the seller."""

    __tablename__ = "orders"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auctions.auction_id"),
        nullable=False,
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )
    total_price: Mapped[Decimal] = mapped_column(
        Numeric(20, 2),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        default=OrderStatus.AWAITING_PAYMENT_DETAILS.value,
    )
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("total_price >= 0", name="chk_order_total_price"),
        # At most one order per auction
        Index("uq_orders_auction", "auction_id", unique=True),
        Index("idx_orders_buyer_created", "buyer_id", "created_at"),
        Index("idx_orders_seller_created", "seller_id", "created_at"),
    )


class OrderInvoice(Base):
    """Payment details submitted by the buyer; latest row is authoritative."""

    __tablename__ = "order_invoices"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.order_id", ondelete="CASCADE"),
        nullable=False,
    )
    payment_method: Mapped[str] = mapped_column(String(100), nullable=False)
    billing_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    shipping_address: Mapped[str] = mapped_column(Text, nullable=False)
    payment_proof: Mapped[str | None] = mapped_column(Text, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_order_invoices_order_created", "order_id", "created_at"),
    )


class OrderShipment(Base):
    """Shipment details recorded by the seller; latest row is authoritative."""

    __tablename__ = "order_shipments"

    shipment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.order_id", ondelete="CASCADE"),
        nullable=False,
    )
    carrier: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    invoice_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    proof_images: Mapped[List[str]] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_order_shipments_order_created", "order_id", "created_at"),
    )


class OrderChatMessage(Base):
    """Append-only chat between buyer and seller."""

    __tablename__ = "order_chats"

    message_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.order_id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_order_chats_order_created", "order_id", "created_at"),
    )


class Rating(Base):
    """A +1/-1 score one participant leaves for the other on one auction."""

    __tablename__ = "ratings"

    rating_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    from_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )
    to_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )
    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auctions.auction_id"),
        nullable=False,
    )
    score: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint("score IN (-1, 1)", name="chk_rating_score"),
        # One rating per direction per transaction; target of the upsert
        Index("uq_ratings_from_to_auction", "from_user_id", "to_user_id", "auction_id", unique=True),
    )
