"""User model. Registration lives elsewhere; this core only reads identity and
maintains the aggregate rating counters."""

import uuid

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from auctionhouse.core.database import Base
from auctionhouse.models.base import TimestampMixin


class User(Base, TimestampMixin):
    """A marketplace participant (bidder and/or seller)."""

    __tablename__ = "users"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    full_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    rating_pos: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    rating_neg: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
    )

    __table_args__ = (
        CheckConstraint("rating_pos >= 0", name="chk_user_rating_pos"),
        CheckConstraint("rating_neg >= 0", name="chk_user_rating_neg"),
    )
