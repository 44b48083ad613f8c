"""API v1 routers."""

from auctionhouse.api.v1 import bid_requests, bids, orders, proxy_bids

__all__ = ["bid_requests", "bids", "orders", "proxy_bids"]
