"""Tests for metric label normalization."""

import pytest

from auctionhouse.middleware.metrics import PrometheusMiddleware


@pytest.fixture
def middleware():
    return PrometheusMiddleware(app=None)


class TestEndpointNormalization:
    """Path ids must collapse so label cardinality stays bounded."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/api/v1/auctions/4b7c/bids", "/api/v1/auctions/{id}/bids"),
            ("/api/v1/auctions/4b7c/proxy-bid", "/api/v1/auctions/{id}/proxy-bid"),
            ("/api/v1/auctions/4b7c/buy-now", "/api/v1/auctions/{id}/buy-now"),
            ("/api/v1/auctions/4b7c/rejections/91aa", "/api/v1/auctions/{id}/rejections"),
            ("/api/v1/auctions/4b7c", "/api/v1/auctions"),
            ("/api/v1/bid-requests/77/resolve", "/api/v1/bid-requests"),
            ("/api/v1/orders/5e1f/payment", "/api/v1/orders/{id}/payment"),
            ("/api/v1/orders/5e1f", "/api/v1/orders"),
            ("/health", "/health"),
            ("/favicon.ico", "/other"),
        ],
    )
    def test_normalize(self, middleware, path, expected):
        assert middleware._normalize_endpoint(path) == expected
