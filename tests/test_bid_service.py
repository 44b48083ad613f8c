"""Tests for the bid engine: placement, validation, auto-extend and buy-now."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from auctionhouse.core.exceptions import BidError, BidErrorCode, GateError, GateErrorCode
from auctionhouse.models import Order
from auctionhouse.services.bid_service import BidService, check_bid_amount, extended_end_time
from auctionhouse.services.ledger import minimum_next_bid, utcnow

from conftest import make_ceiling_row, result_of

LOCK_AUCTION = "auctionhouse.services.bid_service.lock_auction"
LOAD_CEILINGS = "auctionhouse.services.proxy_bid_service.load_ceilings"
IS_REJECTED = "auctionhouse.services.gate_service.BidGateService.is_bidder_rejected"


class TestMinimumNextBid:
    """Test cases for the minimum acceptable bid."""

    def test_start_price_before_first_bid(self, make_auction):
        auction = make_auction(start_price=Decimal("10000"), current_price=Decimal("10000"))
        assert minimum_next_bid(auction) == Decimal("10000")

    def test_current_plus_step_after_bids(self, make_auction):
        auction = make_auction(current_price=Decimal("12000"), bid_count=2)
        assert minimum_next_bid(auction) == Decimal("13000")


class TestCheckBidAmount:
    """Test cases for the minimum and step-grid checks."""

    def test_first_bid_at_start_price_accepted(self, make_auction):
        check_bid_amount(make_auction(), Decimal("10000"))

    def test_too_low(self, make_auction):
        auction = make_auction(current_price=Decimal("11000"), bid_count=1)

        with pytest.raises(BidError) as exc_info:
            check_bid_amount(auction, Decimal("11500"))

        assert exc_info.value.code == BidErrorCode.BID_TOO_LOW
        assert exc_info.value.context["min_required"] == Decimal("12000")

    def test_off_grid(self, make_auction):
        auction = make_auction(current_price=Decimal("11000"), bid_count=1)

        with pytest.raises(BidError) as exc_info:
            check_bid_amount(auction, Decimal("12500"))

        assert exc_info.value.code == BidErrorCode.BID_STEP_MISMATCH

    def test_multiple_steps_accepted(self, make_auction):
        auction = make_auction(current_price=Decimal("11000"), bid_count=1)
        check_bid_amount(auction, Decimal("15000"))

    def test_zero_step_skips_grid(self, make_auction):
        auction = make_auction(step_price=Decimal("0"), current_price=Decimal("11000"), bid_count=1)
        check_bid_amount(auction, Decimal("11001"))


class TestExtendedEndTime:
    """Test cases for the auto-extend window."""

    def test_inside_window(self, make_auction):
        now = utcnow()
        auction = make_auction(auto_extend=True, end_time=now + timedelta(minutes=2))

        new_end = extended_end_time(auction, now, threshold_minutes=5, extend_minutes=5)

        assert new_end == auction.end_time + timedelta(minutes=5)

    def test_outside_window(self, make_auction):
        now = utcnow()
        auction = make_auction(auto_extend=True, end_time=now + timedelta(minutes=30))

        assert extended_end_time(auction, now, threshold_minutes=5, extend_minutes=5) is None

    def test_disabled(self, make_auction):
        now = utcnow()
        auction = make_auction(auto_extend=False, end_time=now + timedelta(minutes=1))

        assert extended_end_time(auction, now) is None

    def test_already_ended(self, make_auction):
        now = utcnow()
        auction = make_auction(auto_extend=True, end_time=now - timedelta(seconds=1))

        assert extended_end_time(auction, now) is None


class TestPlaceBid:
    """Test cases for bid placement and proxy resolution in one transaction."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [None, 0, -100, "abc", "100.5"])
    async def test_invalid_input_opens_no_transaction(self, mock_db, amount):
        service = BidService(mock_db)

        with pytest.raises(BidError) as exc_info:
            await service.place_bid(uuid4(), uuid4(), amount)

        assert exc_info.value.code == BidErrorCode.INVALID_BID_INPUT
        mock_db.execute.assert_not_awaited()
        mock_db.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_ids(self, mock_db):
        with pytest.raises(BidError) as exc_info:
            await BidService(mock_db).place_bid(None, uuid4(), 100)

        assert exc_info.value.code == BidErrorCode.INVALID_BID_INPUT

    @pytest.mark.asyncio
    async def test_unknown_auction_rolls_back(self, mock_db):
        with patch(LOCK_AUCTION, AsyncMock(return_value=None)):
            with pytest.raises(BidError) as exc_info:
                await BidService(mock_db).place_bid(uuid4(), uuid4(), 11000)

        assert exc_info.value.code == BidErrorCode.PRODUCT_NOT_FOUND
        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_manual_bid_answered_by_ceiling(self, mock_db, make_auction):
        """Start 10,000, step 1,000, X ceiling 15,000, Y bids 11,000."""
        auction = make_auction()
        x, y = uuid4(), uuid4()
        rows = [make_ceiling_row(auction.auction_id, x, 15000)]
        cache = AsyncMock()
        notifier = AsyncMock()
        service = BidService(mock_db, cache=cache, notifier=notifier)

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)), \
             patch(LOAD_CEILINGS, AsyncMock(return_value=rows)):
            result = await service.place_bid(auction.auction_id, y, 11000)

        assert result.price == Decimal("12000")
        assert result.bid_count == 2
        assert result.leader_id == x
        assert result.bid.amount == Decimal("11000")
        assert result.bid.sequence == 1
        assert result.bid.is_automatic is False
        assert [b.amount for b in result.automatic_bids] == [Decimal("12000")]

        mock_db.commit.assert_awaited_once()
        cache.invalidate.assert_awaited_once_with(auction.auction_id)
        notifier.bid_placed.assert_awaited_once_with(result)
        events = notifier.outbid.await_args.args[0]
        assert [e.outbid_bidder_id for e in events] == [y]

    @pytest.mark.asyncio
    async def test_price_and_count_never_decrease(self, mock_db, make_auction):
        auction = make_auction()
        bidder = uuid4()
        service = BidService(mock_db)
        observed = []

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)), \
             patch(LOAD_CEILINGS, AsyncMock(return_value=[])):
            for amount in (10000, 11000, 13000, 14000):
                result = await service.place_bid(auction.auction_id, bidder, amount)
                observed.append((result.price, result.bid_count))

        assert observed == sorted(observed)
        assert [count for _, count in observed] == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_auto_extend_inside_window(self, mock_db, make_auction):
        end = utcnow() + timedelta(minutes=2)
        auction = make_auction(auto_extend=True, end_time=end)

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)), \
             patch(LOAD_CEILINGS, AsyncMock(return_value=[])):
            result = await BidService(mock_db).place_bid(auction.auction_id, uuid4(), 10000)

        assert result.end_time == end + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_failure_inside_resolution_rolls_back(self, mock_db, make_auction):
        auction = make_auction()

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)), \
             patch(LOAD_CEILINGS, AsyncMock(side_effect=RuntimeError("db gone"))):
            with pytest.raises(RuntimeError):
                await BidService(mock_db).place_bid(auction.auction_id, uuid4(), 10000)

        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_awaited()


class TestSubmitBid:
    """Test cases for the validated entry point."""

    @pytest.mark.asyncio
    async def test_gate_rejection_records_nothing(self, mock_db, make_auction):
        auction = make_auction()
        gate = AsyncMock()
        gate.ensure_can_bid.side_effect = GateError(GateErrorCode.BIDDER_REJECTED)
        service = BidService(mock_db, gate=gate)

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            with pytest.raises(GateError) as exc_info:
                await service.submit_bid(auction.auction_id, uuid4(), 10000)

        assert exc_info.value.code == GateErrorCode.BIDDER_REJECTED
        assert mock_db.added == []
        assert auction.bid_count == 0
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_amount_checked_after_gate(self, mock_db, make_auction):
        auction = make_auction(current_price=Decimal("11000"), bid_count=1)
        gate = AsyncMock()
        service = BidService(mock_db, gate=gate)

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            with pytest.raises(BidError) as exc_info:
                await service.submit_bid(auction.auction_id, uuid4(), 11500)

        assert exc_info.value.code == BidErrorCode.BID_TOO_LOW
        gate.ensure_can_bid.assert_awaited_once()
        assert auction.current_price == Decimal("11000")

    @pytest.mark.asyncio
    async def test_accepted(self, mock_db, make_auction):
        auction = make_auction()
        bidder = uuid4()
        service = BidService(mock_db, gate=AsyncMock())

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)), \
             patch(LOAD_CEILINGS, AsyncMock(return_value=[])):
            result = await service.submit_bid(auction.auction_id, bidder, "10000")

        assert result.price == Decimal("10000")
        assert result.leader_id == bidder
        assert result.automatic_bids == []


class TestBuyNow:
    """Test cases for buy-now."""

    @pytest.mark.asyncio
    async def test_ends_auction_and_opens_order(self, mock_db, make_auction):
        auction = make_auction(buy_now_price=Decimal("30000"))
        buyer = uuid4()
        mock_db.execute = AsyncMock(return_value=result_of(scalar=None))
        notifier = AsyncMock()

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            result = await BidService(mock_db, notifier=notifier).buy_now(auction.auction_id, buyer)

        assert result.total_price == Decimal("30000")
        assert auction.status == "ended"
        assert auction.current_price == Decimal("30000")
        assert auction.bid_count == 1
        assert auction.end_time > auction.start_time

        orders = [obj for obj in mock_db.added if isinstance(obj, Order)]
        assert len(orders) == 1
        assert orders[0].buyer_id == buyer
        assert orders[0].status == "awaiting_payment_details"
        assert result.order_id == orders[0].order_id

        mock_db.commit.assert_awaited_once()
        notifier.auction_closed.assert_awaited_once_with(
            auction.auction_id, Decimal("30000"), buyer, orders[0].order_id
        )

    @pytest.mark.asyncio
    async def test_not_configured(self, mock_db, make_auction):
        auction = make_auction(buy_now_price=None)

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            with pytest.raises(BidError) as exc_info:
                await BidService(mock_db).buy_now(auction.auction_id, uuid4())

        assert exc_info.value.code == BidErrorCode.BUY_NOW_NOT_CONFIGURED
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_price_already_passed(self, mock_db, make_auction):
        auction = make_auction(
            buy_now_price=Decimal("10500"), current_price=Decimal("11000"), bid_count=1
        )

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            with pytest.raises(BidError) as exc_info:
                await BidService(mock_db).buy_now(auction.auction_id, uuid4())

        assert exc_info.value.code == BidErrorCode.BUY_NOW_NOT_AVAILABLE

    @pytest.mark.asyncio
    async def test_ended_auction(self, mock_db, make_auction):
        auction = make_auction(buy_now_price=Decimal("30000"), status="ended")

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            with pytest.raises(BidError) as exc_info:
                await BidService(mock_db).buy_now(auction.auction_id, uuid4())

        assert exc_info.value.code == BidErrorCode.BUY_NOW_NOT_AVAILABLE

    @pytest.mark.asyncio
    async def test_seller_cannot_buy(self, mock_db, make_auction, seller_id):
        auction = make_auction(buy_now_price=Decimal("30000"))

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            with pytest.raises(BidError) as exc_info:
                await BidService(mock_db).buy_now(auction.auction_id, seller_id)

        assert exc_info.value.code == BidErrorCode.CANNOT_BID_OWN_PRODUCT

    @pytest.mark.asyncio
    async def test_already_sold(self, mock_db, make_auction):
        auction = make_auction(buy_now_price=Decimal("30000"))
        mock_db.execute = AsyncMock(return_value=result_of(scalar=uuid4()))

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            with pytest.raises(BidError) as exc_info:
                await BidService(mock_db, gate=AsyncMock()).buy_now(auction.auction_id, uuid4())

        assert exc_info.value.code == BidErrorCode.ALREADY_SOLD
        assert auction.status == "active"
        assert mock_db.added == []

    @pytest.mark.asyncio
    async def test_rejected_buyer_cannot_buy(self, mock_db, make_auction):
        auction = make_auction(buy_now_price=Decimal("50000"))
        is_rejected = AsyncMock(return_value=True)
        mock_db.execute = AsyncMock(return_value=result_of(scalar=None))

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)), patch(IS_REJECTED, is_rejected):
            with pytest.raises(GateError) as exc_info:
                await BidService(mock_db).buy_now(auction.auction_id, uuid4())

        assert exc_info.value.code == GateErrorCode.BIDDER_REJECTED
        is_rejected.assert_awaited_once()
        assert auction.status == "active"
        assert auction.bid_count == 0
        assert mock_db.added == []
        mock_db.commit.assert_not_awaited()
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unapproved_buyer_cannot_buy(self, mock_db, make_auction):
        auction = make_auction(buy_now_price=Decimal("50000"), requires_bid_approval=True)
        mock_db.execute = AsyncMock(return_value=result_of(scalar=None))

        with patch(LOCK_AUCTION, AsyncMock(return_value=auction)):
            with pytest.raises(GateError) as exc_info:
                await BidService(mock_db).buy_now(auction.auction_id, uuid4())

        assert exc_info.value.code == GateErrorCode.APPROVAL_REQUIRED
        assert auction.status == "active"
        assert not [obj for obj in mock_db.added if isinstance(obj, Order)]


class TestGetAuction:
    """Test cases for the auction read path."""

    @pytest.mark.asyncio
    async def test_includes_leader_and_minimum(self, mock_db, make_auction):
        auction = make_auction(current_price=Decimal("12000"), bid_count=2)
        leader = uuid4()
        bid = MagicMock(bidder_id=leader)

        with patch("auctionhouse.services.bid_service.get_auction", AsyncMock(return_value=auction)), \
             patch("auctionhouse.services.bid_service.get_highest_bid", AsyncMock(return_value=bid)):
            response = await BidService(mock_db).get_auction(auction.auction_id)

        assert response.leader_id == leader
        assert response.minimum_bid == Decimal("13000")

    @pytest.mark.asyncio
    async def test_missing(self, mock_db):
        with patch("auctionhouse.services.bid_service.get_auction", AsyncMock(return_value=None)):
            assert await BidService(mock_db).get_auction(uuid4()) is None
