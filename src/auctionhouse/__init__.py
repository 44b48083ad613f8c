"""Timed-auction bidding engine with proxy bidding and order fulfillment."""

__version__ = "1.0.0"
