"""Tests for the bid gate: eligibility, approval requests and rejections."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from auctionhouse.core.exceptions import BidError, BidErrorCode, GateError, GateErrorCode
from auctionhouse.models import BidRejection, BidRequest, BidRequestStatus
from auctionhouse.schemas.gate import Eligibility
from auctionhouse.services.gate_service import (
    BidGateService,
    evaluate_eligibility,
    normalize_request_action,
    raise_for_eligibility,
)
from auctionhouse.services.ledger import utcnow

from conftest import result_of

LOCK_AUCTION = "auctionhouse.services.gate_service.lock_auction"
HIGHEST_BID = "auctionhouse.services.gate_service.get_highest_bid"


def evaluate(auction, bidder_id, **facts):
    facts.setdefault("rejected", False)
    facts.setdefault("request_status", None)
    facts.setdefault("rating_percent", 95)
    return evaluate_eligibility(auction, bidder_id, min_rating_percent=80, **facts)


class TestEvaluateEligibility:
    """Test cases for the eligibility rules and their order."""

    def test_allowed(self, make_auction):
        result = evaluate(make_auction(), uuid4())

        assert result.allowed is True
        assert result.reason is None
        assert result.rating_percent == 95

    def test_own_auction_checked_first(self, make_auction, seller_id):
        auction = make_auction(status="ended")

        result = evaluate(auction, seller_id, rejected=True)

        assert result.reason == BidErrorCode.CANNOT_BID_OWN_PRODUCT

    def test_inactive_before_ended(self, make_auction):
        auction = make_auction(status="draft", end_time=utcnow() - timedelta(minutes=1))

        assert evaluate(auction, uuid4()).reason == BidErrorCode.AUCTION_NOT_ACTIVE

    def test_ended_by_time(self, make_auction):
        auction = make_auction(end_time=utcnow() - timedelta(seconds=1))

        assert evaluate(auction, uuid4()).reason == BidErrorCode.AUCTION_ENDED

    def test_rejection_before_approval(self, make_auction):
        auction = make_auction(requires_bid_approval=True)

        result = evaluate(auction, uuid4(), rejected=True, request_status="approved")

        assert result.reason == GateErrorCode.BIDDER_REJECTED

    @pytest.mark.parametrize("request_status", [None, "pending", "rejected"])
    def test_approval_required(self, make_auction, request_status):
        auction = make_auction(requires_bid_approval=True)

        result = evaluate(auction, uuid4(), request_status=request_status)

        assert result.reason == GateErrorCode.APPROVAL_REQUIRED

    def test_approved_request_passes(self, make_auction):
        auction = make_auction(requires_bid_approval=True)

        assert evaluate(auction, uuid4(), request_status="approved").allowed is True

    def test_unrated_allowed(self, make_auction):
        result = evaluate(make_auction(allow_unrated_bidders=True), uuid4(), rating_percent=None)

        assert result.allowed is True
        assert result.rating_percent is None

    def test_unrated_not_allowed(self, make_auction):
        result = evaluate(make_auction(allow_unrated_bidders=False), uuid4(), rating_percent=None)

        assert result.reason == GateErrorCode.UNRATED_NOT_ALLOWED

    @pytest.mark.parametrize("percent,allowed", [(79, False), (80, True), (100, True), (0, False)])
    def test_rating_threshold(self, make_auction, percent, allowed):
        result = evaluate(make_auction(), uuid4(), rating_percent=percent)

        assert result.allowed is allowed
        if not allowed:
            assert result.reason == GateErrorCode.RATING_TOO_LOW
            assert result.rating_percent == percent


class TestRaiseForEligibility:
    """Test cases for mapping reasons onto error kinds."""

    def test_allowed_is_silent(self):
        raise_for_eligibility(Eligibility.ok(90), uuid4(), uuid4())

    def test_bid_reason_raises_bid_error(self):
        with pytest.raises(BidError) as exc_info:
            raise_for_eligibility(
                Eligibility.forbidden(BidErrorCode.AUCTION_ENDED), uuid4(), uuid4()
            )
        assert exc_info.value.code == BidErrorCode.AUCTION_ENDED

    def test_gate_reason_raises_gate_error(self):
        with pytest.raises(GateError) as exc_info:
            raise_for_eligibility(
                Eligibility.forbidden(GateErrorCode.RATING_TOO_LOW, 50), uuid4(), uuid4()
            )
        assert exc_info.value.code == GateErrorCode.RATING_TOO_LOW


class TestNormalizeRequestAction:
    """Test cases for seller action parsing."""

    @pytest.mark.parametrize("action", ["approve", "approved"])
    def test_approve(self, action):
        assert normalize_request_action(action) == BidRequestStatus.APPROVED

    @pytest.mark.parametrize("action", ["reject", "rejected", "maybe", "", None])
    def test_anything_else_rejects(self, action):
        assert normalize_request_action(action) == BidRequestStatus.REJECTED


class TestEnsureCanBid:
    """Test cases for loading gate facts from the session."""

    @pytest.mark.asyncio
    async def test_loads_rating_and_allows(self, mock_db, make_auction):
        rating_row = MagicMock(rating_pos=9, rating_neg=1)
        mock_db.execute = AsyncMock(
            side_effect=[result_of(scalar=None), result_of(rows=[rating_row])]
        )

        eligibility = await BidGateService(mock_db).ensure_can_bid(make_auction(), uuid4())

        assert eligibility.allowed is True
        assert eligibility.rating_percent == 90

    @pytest.mark.asyncio
    async def test_rejected_bidder_raises(self, mock_db, make_auction):
        mock_db.execute = AsyncMock(
            side_effect=[result_of(scalar=uuid4()), result_of(rows=[])]
        )

        with pytest.raises(GateError) as exc_info:
            await BidGateService(mock_db).ensure_can_bid(make_auction(), uuid4())

        assert exc_info.value.code == GateErrorCode.BIDDER_REJECTED


class TestSubmitBidRequest:
    """Test cases for idempotent approval requests."""

    @pytest.mark.asyncio
    async def test_missing_info(self, mock_db):
        with pytest.raises(GateError) as exc_info:
            await BidGateService(mock_db).submit_bid_request(uuid4(), None)

        assert exc_info.value.code == GateErrorCode.MISSING_BID_REQUEST_INFO

    @pytest.mark.asyncio
    async def test_unknown_auction(self, mock_db):
        with patch(LOCK_AUCTION, AsyncMock(return_value=None)):
            with pytest.raises(GateError) as exc_info:
                await BidGateService(mock_db).submit_bid_request(uuid4(), uuid4())

        assert exc_info.value.code == GateErrorCode.PRODUCT_NOT_FOUND
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_second_submission_refreshes_pending_row(self, mock_db, make_auction):
        auction = make_auction(requires_bid_approval=True)
        bidder = uuid4()
        service = BidGateService(mock_db)

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            first = await service.submit_bid_request(auction.auction_id, bidder, "  please  ")
            stored = mock_db.added[0]
            mock_db.execute = AsyncMock(return_value=result_of(scalar=stored))
            second = await service.submit_bid_request(auction.auction_id, bidder, "again")

        assert first.created is True
        assert first.status == "pending"
        assert first.request.message == "please"
        assert second.created is False
        assert second.updated is True
        assert second.request.request_id == first.request.request_id
        assert second.request.message == "again"
        assert len(mock_db.added) == 1

    @pytest.mark.asyncio
    async def test_rejected_request_resets_to_pending(self, mock_db, make_auction):
        auction = make_auction(requires_bid_approval=True)
        now = utcnow()
        request = BidRequest(
            request_id=uuid4(),
            auction_id=auction.auction_id,
            bidder_id=uuid4(),
            status="rejected",
            message="old",
            seller_note="no",
            approved_by=None,
            responded_at=now,
            created_at=now,
            updated_at=now,
        )
        mock_db.execute = AsyncMock(return_value=result_of(scalar=request))

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            result = await BidGateService(mock_db).submit_bid_request(
                auction.auction_id, request.bidder_id, "reconsider"
            )

        assert result.status == "pending"
        assert result.updated is True
        assert result.request.seller_note is None
        assert result.request.responded_at is None

    @pytest.mark.asyncio
    async def test_approved_request_unchanged(self, mock_db, make_auction, seller_id):
        auction = make_auction(requires_bid_approval=True)
        now = utcnow()
        request = BidRequest(
            request_id=uuid4(),
            auction_id=auction.auction_id,
            bidder_id=uuid4(),
            status="approved",
            message="hi",
            seller_note="welcome",
            approved_by=seller_id,
            responded_at=now,
            created_at=now,
            updated_at=now,
        )
        mock_db.execute = AsyncMock(return_value=result_of(scalar=request))

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            result = await BidGateService(mock_db).submit_bid_request(
                auction.auction_id, request.bidder_id, "new message"
            )

        assert result.status == "approved"
        assert result.created is False
        assert result.updated is False
        assert result.request.message == "hi"


class TestResolveBidRequest:
    """Test cases for seller decisions."""

    def _request(self):
        now = utcnow()
        return BidRequest(
            request_id=uuid4(),
            auction_id=uuid4(),
            bidder_id=uuid4(),
            status="pending",
            message=None,
            seller_note=None,
            approved_by=None,
            responded_at=None,
            created_at=now,
            updated_at=now,
        )

    @pytest.mark.asyncio
    async def test_approve(self, mock_db, seller_id):
        request = self._request()
        mock_db.execute = AsyncMock(return_value=result_of(rows=[(request, seller_id)]))

        record = await BidGateService(mock_db).resolve_bid_request(
            request.request_id, seller_id, "approve", " ok "
        )

        assert record.status == "approved"
        assert record.approved_by == seller_id
        assert record.seller_note == "ok"
        assert record.responded_at is not None
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reject_clears_approver(self, mock_db, seller_id):
        request = self._request()
        mock_db.execute = AsyncMock(return_value=result_of(rows=[(request, seller_id)]))

        record = await BidGateService(mock_db).resolve_bid_request(request.request_id, seller_id, "reject")

        assert record.status == "rejected"
        assert record.approved_by is None

    @pytest.mark.asyncio
    async def test_not_owner(self, mock_db, seller_id):
        request = self._request()
        mock_db.execute = AsyncMock(return_value=result_of(rows=[(request, seller_id)]))

        with pytest.raises(GateError) as exc_info:
            await BidGateService(mock_db).resolve_bid_request(request.request_id, uuid4(), "approve")

        assert exc_info.value.code == GateErrorCode.NOT_PRODUCT_OWNER
        assert request.status == "pending"
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_found(self, mock_db):
        with pytest.raises(GateError) as exc_info:
            await BidGateService(mock_db).resolve_bid_request(uuid4(), uuid4(), "approve")

        assert exc_info.value.code == GateErrorCode.BID_REQUEST_NOT_FOUND


class TestRejectBidder:
    """Test cases for bidder exclusion and price rollback."""

    @pytest.mark.asyncio
    async def test_leader_rolls_back_to_runner_up(self, mock_db, make_auction, seller_id):
        auction = make_auction(current_price=Decimal("13000"), bid_count=3)
        leader, runner = uuid4(), uuid4()
        leading = MagicMock(bidder_id=leader, amount=Decimal("13000"))
        runner_up = MagicMock(bidder_id=runner, amount=Decimal("12000"))
        highest = AsyncMock(side_effect=[leading, runner_up])

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)), patch(HIGHEST_BID, highest):
            result = await BidGateService(mock_db).reject_bidder(
                auction.auction_id, leader, seller_id, "shill bidding"
            )

        assert result.was_highest_bidder is True
        assert result.previous_price == Decimal("13000")
        assert result.current_price == Decimal("12000")
        assert result.new_leader_id == runner
        assert auction.current_price == Decimal("12000")
        assert highest.await_args_list[1].kwargs["exclude_bidder_id"] == leader

        rejections = [obj for obj in mock_db.added if isinstance(obj, BidRejection)]
        assert len(rejections) == 1
        assert rejections[0].reason == "shill bidding"
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_only_bidder_rolls_back_to_start_price(self, mock_db, make_auction, seller_id):
        auction = make_auction(current_price=Decimal("11000"), bid_count=1)
        leader = uuid4()
        leading = MagicMock(bidder_id=leader, amount=Decimal("11000"))

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)), \
             patch(HIGHEST_BID, AsyncMock(side_effect=[leading, None])):
            result = await BidGateService(mock_db).reject_bidder(auction.auction_id, leader, seller_id)

        assert result.current_price == Decimal("10000")
        assert result.new_leader_id is None

    @pytest.mark.asyncio
    async def test_non_leader_keeps_price(self, mock_db, make_auction, seller_id):
        auction = make_auction(current_price=Decimal("13000"), bid_count=3)
        leader, other = uuid4(), uuid4()
        highest = AsyncMock(return_value=MagicMock(bidder_id=leader, amount=Decimal("13000")))

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)), patch(HIGHEST_BID, highest):
            result = await BidGateService(mock_db).reject_bidder(auction.auction_id, other, seller_id)

        assert result.was_highest_bidder is False
        assert result.current_price == Decimal("13000")
        assert result.new_leader_id == leader
        highest.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_already_rejected(self, mock_db, make_auction, seller_id):
        auction = make_auction()
        mock_db.execute = AsyncMock(return_value=result_of(scalar=uuid4()))

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            result = await BidGateService(mock_db).reject_bidder(auction.auction_id, uuid4(), seller_id)

        assert result.already_rejected is True
        assert mock_db.added == []
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_owner(self, mock_db, make_auction):
        auction = make_auction()

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            with pytest.raises(GateError) as exc_info:
                await BidGateService(mock_db).reject_bidder(auction.auction_id, uuid4(), uuid4())

        assert exc_info.value.code == GateErrorCode.NOT_PRODUCT_OWNER
        mock_db.rollback.assert_awaited_once()


class TestUnrejectBidder:
    """Test cases for lifting an exclusion."""

    @pytest.mark.asyncio
    async def test_removed(self, mock_db, make_auction, seller_id):
        auction = make_auction()
        mock_db.execute = AsyncMock(return_value=result_of(rowcount=1))

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            result = await BidGateService(mock_db).unreject_bidder(auction.auction_id, uuid4(), seller_id)

        assert result.removed is True

    @pytest.mark.asyncio
    async def test_nothing_to_remove(self, mock_db, make_auction, seller_id):
        auction = make_auction()
        mock_db.execute = AsyncMock(return_value=result_of(rowcount=0))

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            result = await BidGateService(mock_db).unreject_bidder(auction.auction_id, uuid4(), seller_id)

        assert result.removed is False
        mock_db.commit.assert_awaited_once()
