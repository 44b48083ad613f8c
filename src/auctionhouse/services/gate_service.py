"""Bid gate: seller approval requests, bidder exclusions and eligibility."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from auctionhouse.core.config import settings
from auctionhouse.core.exceptions import BidError, BidErrorCode, GateError, GateErrorCode
from auctionhouse.models.auction import Auction, AuctionStatus
from auctionhouse.models.bid import Bid, ProxyCeiling
from auctionhouse.models.gate import BidRejection, BidRequest, BidRequestStatus
from auctionhouse.models.user import User
from auctionhouse.schemas.gate import (
    BidRequestRecord,
    BidRequestResult,
    Eligibility,
    RejectedBidder,
    RejectionResult,
    SellerBidRequest,
    UnrejectResult,
)
from auctionhouse.services.ledger import (
    as_utc,
    get_auction,
    get_highest_bid,
    lock_auction,
    utcnow,
)
from auctionhouse.services.user_service import UserService

logger = logging.getLogger(__name__)

REQUEST_MESSAGE_MAX_LENGTH = 800
SELLER_NOTE_MAX_LENGTH = 800
REJECTION_REASON_MAX_LENGTH = 500


def _clip(text: str | None, limit: int) -> str | None:
    if text is None:
        return None
    trimmed = text.strip()[:limit]
    return trimmed or None


def normalize_request_action(action: str | None) -> BidRequestStatus:
    """``approve``/``approved`` approve; anything else rejects."""
    if action in ("approve", "approved"):
        return BidRequestStatus.APPROVED
    return BidRequestStatus.REJECTED


def evaluate_eligibility(
    auction: Auction,
    bidder_id: UUID,
    *,
    rejected: bool,
    request_status: str | None,
    rating_percent: int | None,
    min_rating_percent: int = settings.MIN_BIDDER_RATING_PERCENT,
    now: datetime | None = None,
) -> Eligibility:
    """Decide whether a bidder may bid, from already-loaded facts.

    Checks run in a fixed order so the reported reason is deterministic:
    ownership, auction state, exclusion, approval, reputation.

    Args:
        auction: Auction row or snapshot
        bidder_id: Prospective bidder
        rejected: Whether a BidRejection exists for the pair
        request_status: Status of the pair's BidRequest, if any
        rating_percent: Bidder's positive share, None when unrated
        min_rating_percent: Reputation threshold
        now: Evaluation time

    Returns:
        Eligibility with the first failing reason, if any
    """
    now = now or utcnow()

    if auction.seller_id == bidder_id:
        return Eligibility.forbidden(BidErrorCode.CANNOT_BID_OWN_PRODUCT, rating_percent)
    if auction.status != AuctionStatus.ACTIVE.value:
        return Eligibility.forbidden(BidErrorCode.AUCTION_NOT_ACTIVE, rating_percent)
    if as_utc(auction.end_time) <= now:
        return Eligibility.forbidden(BidErrorCode.AUCTION_ENDED, rating_percent)
    if rejected:
        return Eligibility.forbidden(GateErrorCode.BIDDER_REJECTED, rating_percent)
    if auction.requires_bid_approval and request_status != BidRequestStatus.APPROVED.value:
        return Eligibility.forbidden(GateErrorCode.APPROVAL_REQUIRED, rating_percent)
    if rating_percent is None:
        if not auction.allow_unrated_bidders:
            return Eligibility.forbidden(GateErrorCode.UNRATED_NOT_ALLOWED)
        return Eligibility.ok()
    if rating_percent < min_rating_percent:
        return Eligibility.forbidden(GateErrorCode.RATING_TOO_LOW, rating_percent)
    return Eligibility.ok(rating_percent)


def raise_for_eligibility(eligibility: Eligibility, auction_id: UUID, bidder_id: UUID) -> None:
    if eligibility.allowed:
        return
    reason = eligibility.reason
    error_cls = BidError if isinstance(reason, BidErrorCode) else GateError
    raise error_cls(reason, auction_id=auction_id, bidder_id=bidder_id)


class BidGateService:
    """Service class for bid gate operations."""

    def __init__(self, db: AsyncSession, min_rating_percent: int = settings.MIN_BIDDER_RATING_PERCENT):
        self.db = db
        self.min_rating_percent = min_rating_percent
        self.users = UserService(db)

    # ==================== Eligibility ====================

    async def is_bidder_rejected(self, auction_id: UUID, bidder_id: UUID) -> bool:
        result = await self.db.execute(
            select(BidRejection.rejection_id).where(
                and_(
                    BidRejection.auction_id == auction_id,
                    BidRejection.bidder_id == bidder_id,
                )
            )
        )
        return result.scalar_one_or_none() is not None

    async def get_bid_request(self, auction_id: UUID, bidder_id: UUID) -> BidRequest | None:
        result = await self.db.execute(
            select(BidRequest).where(
                and_(
                    BidRequest.auction_id == auction_id,
                    BidRequest.bidder_id == bidder_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def evaluate(self, auction: Auction, bidder_id: UUID, now: datetime | None = None) -> Eligibility:
        """Load the gate facts for a loaded auction and evaluate them."""
        rejected = await self.is_bidder_rejected(auction.auction_id, bidder_id)

        request_status = None
        if auction.requires_bid_approval:
            request = await self.get_bid_request(auction.auction_id, bidder_id)
            request_status = request.status if request else None

        rating_percent = await self.users.get_rating_percent(bidder_id)

        return evaluate_eligibility(
            auction,
            bidder_id,
            rejected=rejected,
            request_status=request_status,
            rating_percent=rating_percent,
            min_rating_percent=self.min_rating_percent,
            now=now,
        )

    async def can_bid(self, auction_id: UUID, bidder_id: UUID) -> Eligibility:
        """Check whether a bidder may bid on an auction."""
        auction = await get_auction(self.db, auction_id)
        if auction is None:
            return Eligibility.forbidden(BidErrorCode.PRODUCT_NOT_FOUND)
        return await self.evaluate(auction, bidder_id)

    async def ensure_can_bid(self, auction: Auction, bidder_id: UUID, now: datetime | None = None) -> Eligibility:
        """Evaluate eligibility and raise the matching error when forbidden.

        Raises:
            BidError: Ownership or auction-state failures
            GateError: Exclusion, approval or reputation failures
        """
        eligibility = await self.evaluate(auction, bidder_id, now)
        raise_for_eligibility(eligibility, auction.auction_id, bidder_id)
        return eligibility

    # ==================== Bid Requests ====================

    async def submit_bid_request(
        self, auction_id: UUID, bidder_id: UUID, message: str | None = None
    ) -> BidRequestResult:
        """Ask the seller for permission to bid. Idempotent per (auction, bidder).

        - approved: returned unchanged
        - rejected: reset to pending, clearing seller note, approver and response time
        - pending: message refreshed
        - none: a pending request is inserted

        Raises:
            GateError: MISSING_BID_REQUEST_INFO or PRODUCT_NOT_FOUND
        """
        if not auction_id or not bidder_id:
            raise GateError(GateErrorCode.MISSING_BID_REQUEST_INFO)

        trimmed = _clip(message, REQUEST_MESSAGE_MAX_LENGTH)

        try:
            # Serializes concurrent requests for the same auction
            auction = await lock_auction(self.db, auction_id)
            if auction is None:
                raise GateError(GateErrorCode.PRODUCT_NOT_FOUND, auction_id=auction_id)

            request = await self.get_bid_request(auction_id, bidder_id)
            created = updated = False

            if request is None:
                request = BidRequest(
                    auction_id=auction_id,
                    bidder_id=bidder_id,
                    status=BidRequestStatus.PENDING.value,
                    message=trimmed,
                )
                self.db.add(request)
                created = True
            elif request.status != BidRequestStatus.APPROVED.value:
                request.message = trimmed
                if request.status == BidRequestStatus.REJECTED.value:
                    request.status = BidRequestStatus.PENDING.value
                    request.seller_note = None
                    request.approved_by = None
                    request.responded_at = None
                updated = True

            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Bid request submitted",
            extra={"auction_id": auction_id, "bidder_id": bidder_id, "status": request.status},
        )
        return BidRequestResult(
            request=BidRequestRecord.model_validate(request),
            status=request.status,
            created=created,
            updated=updated,
        )

    async def resolve_bid_request(
        self, request_id: UUID, seller_id: UUID, action: str, note: str | None = None
    ) -> BidRequestRecord:
        """Approve or reject a pending request. No pricing side effect.

        Raises:
            GateError: MISSING_BID_REQUEST_INFO, BID_REQUEST_NOT_FOUND or NOT_PRODUCT_OWNER
        """
        if not request_id or not seller_id:
            raise GateError(GateErrorCode.MISSING_BID_REQUEST_INFO)

        status = normalize_request_action(action)

        try:
            result = await self.db.execute(
                select(BidRequest, Auction.seller_id)
                .join(Auction, Auction.auction_id == BidRequest.auction_id)
                .where(BidRequest.request_id == request_id)
                .with_for_update(of=BidRequest)
            )
            row = result.one_or_none()
            if row is None:
                raise GateError(GateErrorCode.BID_REQUEST_NOT_FOUND, request_id=request_id)

            request, owner_id = row
            if owner_id != seller_id:
                raise GateError(
                    GateErrorCode.NOT_PRODUCT_OWNER,
                    request_id=request_id,
                    seller_id=seller_id,
                )

            request.status = status.value
            request.seller_note = _clip(note, SELLER_NOTE_MAX_LENGTH)
            request.approved_by = seller_id if status == BidRequestStatus.APPROVED else None
            request.responded_at = utcnow()

            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Bid request {status.value}",
            extra={"request_id": request_id, "auction_id": request.auction_id, "status": status.value},
        )
        return BidRequestRecord.model_validate(request)

    async def list_bid_requests_for_seller(
        self, seller_id: UUID, status: str | None = None
    ) -> list[SellerBidRequest]:
        """Requests on the seller's auctions, oldest first."""
        query = (
            select(BidRequest, Auction.title, User.full_name, User.rating_pos, User.rating_neg)
            .join(Auction, Auction.auction_id == BidRequest.auction_id)
            .outerjoin(User, User.user_id == BidRequest.bidder_id)
            .where(Auction.seller_id == seller_id)
            .order_by(BidRequest.created_at.asc())
        )
        if status:
            query = query.where(BidRequest.status == status)

        result = await self.db.execute(query)
        return [
            SellerBidRequest(
                request_id=request.request_id,
                auction_id=request.auction_id,
                auction_title=title,
                bidder_id=request.bidder_id,
                bidder_name=full_name,
                bidder_rating_pos=rating_pos or 0,
                bidder_rating_neg=rating_neg or 0,
                status=request.status,
                message=request.message,
                seller_note=request.seller_note,
                created_at=request.created_at,
                responded_at=request.responded_at,
            )
            for request, title, full_name, rating_pos, rating_neg in result.all()
        ]

    # ==================== Rejections ====================

    async def _lock_owned_auction(self, auction_id: UUID, seller_id: UUID) -> Auction:
        auction = await lock_auction(self.db, auction_id)
        if auction is None:
            raise GateError(GateErrorCode.PRODUCT_NOT_FOUND, auction_id=auction_id)
        if auction.seller_id != seller_id:
            raise GateError(
                GateErrorCode.NOT_PRODUCT_OWNER,
                auction_id=auction_id,
                seller_id=seller_id,
            )
        return auction

    async def reject_bidder(
        self,
        auction_id: UUID,
        bidder_id: UUID,
        seller_id: UUID,
        reason: str | None = None,
    ) -> RejectionResult:
        """Exclude a bidder from an auction.

        The bidder's proxy ceiling is dropped. If they currently lead, the
        displayed price rolls back to the best remaining bid, or to the start
        price when nobody else has bid. Bid rows are kept.

        Raises:
            GateError: MISSING_BID_REQUEST_INFO, PRODUCT_NOT_FOUND or NOT_PRODUCT_OWNER
        """
        if not auction_id or not bidder_id or not seller_id:
            raise GateError(GateErrorCode.MISSING_BID_REQUEST_INFO)

        try:
            auction = await self._lock_owned_auction(auction_id, seller_id)

            if await self.is_bidder_rejected(auction_id, bidder_id):
                await self.db.rollback()
                return RejectionResult(
                    auction_id=auction_id,
                    bidder_id=bidder_id,
                    already_rejected=True,
                    current_price=auction.current_price,
                )

            # Leader must be read before the rejection row hides this bidder
            leading = await get_highest_bid(self.db, auction_id)
            was_leader = leading is not None and leading.bidder_id == bidder_id

            self.db.add(
                BidRejection(
                    auction_id=auction_id,
                    bidder_id=bidder_id,
                    reason=_clip(reason, REJECTION_REASON_MAX_LENGTH),
                    created_at=utcnow(),
                )
            )
            await self.db.execute(
                delete(ProxyCeiling).where(
                    and_(
                        ProxyCeiling.auction_id == auction_id,
                        ProxyCeiling.bidder_id == bidder_id,
                    )
                )
            )

            previous_price = auction.current_price
            new_leader_id = leading.bidder_id if leading is not None else None
            if was_leader:
                await self.db.flush()
                runner_up: Bid | None = await get_highest_bid(
                    self.db, auction_id, exclude_bidder_id=bidder_id
                )
                if runner_up is not None:
                    auction.current_price = runner_up.amount
                    new_leader_id = runner_up.bidder_id
                else:
                    auction.current_price = auction.start_price
                    new_leader_id = None

            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Bidder rejected",
            extra={
                "auction_id": auction_id,
                "bidder_id": bidder_id,
                "price": auction.current_price,
                "leader_id": new_leader_id,
            },
        )
        return RejectionResult(
            auction_id=auction_id,
            bidder_id=bidder_id,
            was_highest_bidder=was_leader,
            previous_price=previous_price,
            current_price=auction.current_price,
            new_leader_id=new_leader_id,
        )

    async def unreject_bidder(self, auction_id: UUID, bidder_id: UUID, seller_id: UUID) -> UnrejectResult:
        """Lift an exclusion. Does not restore a dropped ceiling or price.

        Raises:
            GateError: MISSING_BID_REQUEST_INFO, PRODUCT_NOT_FOUND or NOT_PRODUCT_OWNER
        """
        if not auction_id or not bidder_id or not seller_id:
            raise GateError(GateErrorCode.MISSING_BID_REQUEST_INFO)

        try:
            await self._lock_owned_auction(auction_id, seller_id)
            result = await self.db.execute(
                delete(BidRejection).where(
                    and_(
                        BidRejection.auction_id == auction_id,
                        BidRejection.bidder_id == bidder_id,
                    )
                )
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        removed = result.rowcount > 0
        if removed:
            logger.info("Bidder unrejected", extra={"auction_id": auction_id, "bidder_id": bidder_id})
        return UnrejectResult(auction_id=auction_id, bidder_id=bidder_id, removed=removed)

    async def list_rejected_bidders(self, auction_id: UUID) -> list[RejectedBidder]:
        result = await self.db.execute(
            select(BidRejection)
            .where(BidRejection.auction_id == auction_id)
            .order_by(BidRejection.created_at.desc())
        )
        return [RejectedBidder.model_validate(r) for r in result.scalars().all()]

