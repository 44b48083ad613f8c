"""Rating service: per-auction +1/-1 scores and the users' aggregate counters."""

import logging
from uuid import UUID

from sqlalchemy import and_, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from auctionhouse.core.exceptions import OrderError, OrderErrorCode
from auctionhouse.models.order import Rating
from auctionhouse.models.user import User
from auctionhouse.services.ledger import utcnow

logger = logging.getLogger(__name__)

VALID_SCORES = (1, -1)


def validate_score(score) -> int:
    """Accept only +1 or -1.

    Raises:
        OrderError: RATING_INVALID_SCORE
    """
    if isinstance(score, bool) or score not in VALID_SCORES:
        raise OrderError(OrderErrorCode.RATING_INVALID_SCORE, score=score)
    return int(score)


def rating_delta(previous: int | None, new: int) -> tuple[int, int]:
    """Counter adjustment when a rating goes from ``previous`` to ``new``.

    Returns:
        (positive delta, negative delta); (0, 0) when the score is unchanged
    """
    pos = (1 if new == 1 else 0) - (1 if previous == 1 else 0)
    neg = (1 if new == -1 else 0) - (1 if previous == -1 else 0)
    return pos, neg


class RatingService:
    """Service class for rating operations. Methods run inside the caller's transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_rating(self, from_user_id: UUID, to_user_id: UUID, auction_id: UUID) -> Rating | None:
        result = await self.db.execute(
            select(Rating).where(
                and_(
                    Rating.from_user_id == from_user_id,
                    Rating.to_user_id == to_user_id,
                    Rating.auction_id == auction_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def upsert_rating(
        self,
        from_user_id: UUID,
        to_user_id: UUID,
        auction_id: UUID,
        score: int,
        comment: str | None = None,
    ) -> Rating:
        """Insert or replace a rating and move the target's counters by the delta.

        The previous score is read under FOR UPDATE so concurrent re-ratings
        of the same key apply their deltas one after the other. Counters are
        clamped at zero.

        Args:
            from_user_id: Reviewer
            to_user_id: Reviewed participant
            auction_id: Auction the order belongs to
            score: +1 or -1
            comment: Optional free text

        Returns:
            The stored rating
        """
        score = validate_score(score)
        now = utcnow()

        result = await self.db.execute(
            select(Rating.score)
            .where(
                and_(
                    Rating.from_user_id == from_user_id,
                    Rating.to_user_id == to_user_id,
                    Rating.auction_id == auction_id,
                )
            )
            .with_for_update()
        )
        previous = result.scalar_one_or_none()

        stmt = (
            pg_insert(Rating)
            .values(
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                auction_id=auction_id,
                score=score,
                comment=comment,
                created_at=now,
            )
            .on_conflict_do_update(
                index_elements=["from_user_id", "to_user_id", "auction_id"],
                set_={"score": score, "comment": comment, "created_at": now},
            )
            .returning(Rating)
            .execution_options(populate_existing=True)
        )
        rating = (await self.db.execute(stmt)).scalar_one()

        pos_delta, neg_delta = rating_delta(previous, score)
        if pos_delta or neg_delta:
            await self.db.execute(
                update(User)
                .where(User.user_id == to_user_id)
                .values(
                    rating_pos=func.greatest(User.rating_pos + pos_delta, 0),
                    rating_neg=func.greatest(User.rating_neg + neg_delta, 0),
                )
                .execution_options(synchronize_session=False)
            )

        logger.info(
            "Rating recorded",
            extra={"auction_id": auction_id, "status": f"{previous}->{score}"},
        )
        return rating
