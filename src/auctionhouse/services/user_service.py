"""User service for identity lookups and reputation."""

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auctionhouse.models.user import User


def positive_rating_percent(rating_pos: int, rating_neg: int) -> int | None:
    """Share of positive ratings, rounded half up to a whole percent.

    Returns:
        0-100, or None when the user has never been rated
    """
    total = rating_pos + rating_neg
    if total <= 0:
        return None
    percent = Decimal(rating_pos * 100) / Decimal(total)
    return int(percent.quantize(Decimal(1), rounding=ROUND_HALF_UP))


class UserService:
    """Service class for user operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        result = await self.db.execute(select(User).where(User.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        """Get user by email."""
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_rating_percent(self, user_id: UUID) -> int | None:
        """Positive rating share for a user; None if unknown or never rated."""
        result = await self.db.execute(
            select(User.rating_pos, User.rating_neg).where(User.user_id == user_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return positive_rating_percent(row.rating_pos, row.rating_neg)
