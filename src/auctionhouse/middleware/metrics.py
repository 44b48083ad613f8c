"""Prometheus metrics middleware and domain counters."""
import re
import time
from typing import Callable

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


# =============================================================================
# Prometheus Metrics Definitions
# =============================================================================

# Request metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
)

# Bid-specific metrics
BID_COUNTER = Counter(
    "bids_total",
    "Manual bid attempts by outcome",
    ["status"],  # accepted, or the error code
)

BID_LATENCY = Histogram(
    "bid_latency_seconds",
    "Bid placement latency in seconds (gate + placement + proxy resolution)",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

AUTOMATIC_BIDS = Counter(
    "automatic_bids_total",
    "Bids placed by the proxy-bid resolver",
)

PROXY_CHAIN_LENGTH = Histogram(
    "proxy_chain_length",
    "Synthetic bids produced per proxy resolution",
    buckets=[0, 1, 2, 3, 5, 10, 25, 100, 1000],
)

# Fulfillment metrics
ORDER_TRANSITIONS = Counter(
    "order_transitions_total",
    "Order state machine transitions",
    ["transition"],
)

AUCTIONS_CLOSED = Counter(
    "auctions_closed_total",
    "Auctions closed by the background closer",
    ["outcome"],  # order_created, no_winner
)


# =============================================================================
# Metrics Middleware
# =============================================================================

class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for all HTTP requests."""

    # Path ids collapse into placeholders to keep label cardinality bounded
    ENDPOINT_PATTERNS = [
        (re.compile(r"^/api/v1/auctions/[^/]+/bids$"), "/api/v1/auctions/{id}/bids"),
        (re.compile(r"^/api/v1/auctions/[^/]+/proxy-bid$"), "/api/v1/auctions/{id}/proxy-bid"),
        (re.compile(r"^/api/v1/auctions/[^/]+/buy-now$"), "/api/v1/auctions/{id}/buy-now"),
        (re.compile(r"^/api/v1/auctions/[^/]+/bid-requests$"), "/api/v1/auctions/{id}/bid-requests"),
        (re.compile(r"^/api/v1/auctions/[^/]+/rejections"), "/api/v1/auctions/{id}/rejections"),
        (re.compile(r"^/api/v1/auctions/[^/]+/order$"), "/api/v1/auctions/{id}/order"),
        (re.compile(r"^/api/v1/auctions"), "/api/v1/auctions"),
        (re.compile(r"^/api/v1/bid-requests"), "/api/v1/bid-requests"),
        (re.compile(r"^/api/v1/orders/[^/]+/(\w+)$"), r"/api/v1/orders/{id}/\1"),
        (re.compile(r"^/api/v1/orders"), "/api/v1/orders"),
    ]

    BID_ENDPOINT = "/api/v1/auctions/{id}/bids"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            ACTIVE_REQUESTS.dec()
            latency = time.perf_counter() - start_time

            endpoint = self._normalize_endpoint(request.url.path)

            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status=status_code,
            ).inc()

            REQUEST_LATENCY.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(latency)

            if endpoint == self.BID_ENDPOINT and request.method == "POST":
                BID_LATENCY.observe(latency)

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce metric cardinality."""
        for pattern, normalized in self.ENDPOINT_PATTERNS:
            match = pattern.match(path)
            if match:
                return match.expand(normalized) if match.groups() else normalized

        if path in ("/health", "/metrics"):
            return path

        return "/other"


# =============================================================================
# Metrics Endpoint
# =============================================================================

async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics scrape endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# =============================================================================
# Helper Functions for Manual Metric Recording
# =============================================================================

def record_bid(status: str) -> None:
    """Record a manual bid outcome ("accepted" or an error code)."""
    BID_COUNTER.labels(status=status).inc()


def record_proxy_resolution(automatic_bids: int) -> None:
    PROXY_CHAIN_LENGTH.observe(automatic_bids)
    if automatic_bids:
        AUTOMATIC_BIDS.inc(automatic_bids)


def record_order_transition(transition: str) -> None:
    ORDER_TRANSITIONS.labels(transition=transition).inc()


def record_auction_closed(order_created: bool) -> None:
    AUCTIONS_CLOSED.labels(outcome="order_created" if order_created else "no_winner").inc()
