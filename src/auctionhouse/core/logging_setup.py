from __future__ import annotations

import logging
import sys

from auctionhouse.core.config import settings


class KVFormatter(logging.Formatter):
    """Formatter that appends the structured ``extra`` fields we log with."""

    keys = (
        "event",
        "auction_id",
        "bidder_id",
        "seller_id",
        "buyer_id",
        "order_id",
        "request_id",
        "amount",
        "price",
        "bid_count",
        "leader_id",
        "automatic_bids",
        "status",
        "code",
        "count",
        "took_ms",
    )

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        parts: list[str] = []
        for k in self.keys:
            v = getattr(record, k, None)
            if v is None:
                continue
            parts.append(f"{k}={v}")
        if parts:
            return f"{base} | {' '.join(parts)}"
        return base


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """Configure the root logger. Safe to call multiple times."""
    if level is None:
        level = settings.LOG_LEVEL

    root = logging.getLogger()
    root.setLevel(level)

    # Drop existing handlers to avoid duplicates on reloads
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(KVFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return root
