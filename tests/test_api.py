"""Tests for the HTTP error mapping."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import DBAPIError

from auctionhouse.api.deps import get_bid_service, get_current_user_id
from auctionhouse.core.exceptions import BidError, BidErrorCode, GateError, GateErrorCode
from auctionhouse.main import app


@pytest.fixture
def bid_service():
    service = AsyncMock()
    app.dependency_overrides[get_bid_service] = lambda: service
    app.dependency_overrides[get_current_user_id] = lambda: uuid4()
    yield service
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class TestErrorMapping:
    """Domain error kinds map to status codes by category."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_validation_error_is_400(self, client, bid_service):
        auction_id = uuid4()
        bid_service.submit_bid.side_effect = BidError(
            BidErrorCode.BID_TOO_LOW, auction_id=auction_id, min_required=12000
        )

        response = await client.post(f"/api/v1/auctions/{auction_id}/bids", json={"amount": 11500})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "BID_TOO_LOW"
        assert detail["context"]["min_required"] == "12000"

    @pytest.mark.asyncio
    async def test_gate_error_is_403(self, client, bid_service):
        bid_service.submit_bid.side_effect = GateError(GateErrorCode.APPROVAL_REQUIRED)

        response = await client.post(f"/api/v1/auctions/{uuid4()}/bids", json={"amount": 11000})

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "APPROVAL_REQUIRED"

    @pytest.mark.asyncio
    async def test_conflict_is_409(self, client, bid_service):
        bid_service.buy_now.side_effect = BidError(BidErrorCode.ALREADY_SOLD)

        response = await client.post(f"/api/v1/auctions/{uuid4()}/buy-now")

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_database_error_is_503(self, client, bid_service):
        bid_service.submit_bid.side_effect = DBAPIError("SELECT 1", {}, Exception("lock timeout"))

        response = await client.post(f"/api/v1/auctions/{uuid4()}/bids", json={"amount": 11000})

        assert response.status_code == 503
        assert response.json()["detail"]["code"] == "CONCURRENCY_CONFLICT"

    @pytest.mark.asyncio
    async def test_missing_auction_is_404(self, client, bid_service):
        bid_service.get_auction.return_value = None

        response = await client.get(f"/api/v1/auctions/{uuid4()}")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, client):
        response = await client.post(
            f"/api/v1/auctions/{uuid4()}/bids",
            json={"amount": 11000},
            headers={"Authorization": "Bearer not-a-token"},
        )

        assert response.status_code == 401
