"""Best-effort domain event notifications.

Events are published only after the owning transaction committed. A failed
publish never undoes or fails the operation that produced it; it is logged
and dropped here.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from auctionhouse.core.config import settings
from auctionhouse.schemas.bid import BidResult, OutbidEvent
from auctionhouse.schemas.events import (
    AuctionClosedData,
    AuctionClosedEvent,
    BidPlacedData,
    BidPlacedEvent,
    OrderTransitionData,
    OrderTransitionEvent,
    OutbidData,
    OutbidNoticeEvent,
)
from auctionhouse.schemas.order import OrderRecord
from auctionhouse.services.redis_service import RedisService

logger = logging.getLogger(__name__)


def auction_channel(auction_id: UUID | str) -> str:
    return f"auction:{auction_id}:events"


def user_channel(user_id: UUID | str) -> str:
    return f"user:{user_id}:events"


class NotificationService:
    """Publishes domain events to Redis pub/sub and the notification outbox."""

    def __init__(self, redis_service: RedisService | None, enabled: bool = settings.NOTIFICATIONS_ENABLED):
        self.redis_service = redis_service
        self.enabled = enabled and redis_service is not None

    async def _publish(self, channel: str, event: BaseModel) -> bool:
        if not self.enabled:
            return False
        payload: dict[str, Any] = event.model_dump(mode="json")
        try:
            await self.redis_service.publish_event(channel, payload)
            return True
        except Exception as e:
            logger.warning(
                f"Failed to publish {payload.get('event')} on {channel}: {e}",
                extra={"event": payload.get("event")},
            )
            return False

    async def bid_placed(self, result: BidResult) -> bool:
        event = BidPlacedEvent(
            data=BidPlacedData(
                auction_id=str(result.auction_id),
                bidder_id=str(result.bid.bidder_id),
                amount=result.bid.amount,
                price=result.price,
                bid_count=result.bid_count,
                leader_id=str(result.leader_id),
                automatic_bids=len(result.automatic_bids),
                timestamp=datetime.now(timezone.utc),
            )
        )
        return await self._publish(auction_channel(result.auction_id), event)

    async def outbid(self, events: list[OutbidEvent]) -> int:
        """Notify every bidder that lost the lead.

        Returns:
            Number of notices published
        """
        sent = 0
        for outbid in events:
            event = OutbidNoticeEvent(
                data=OutbidData(
                    auction_id=str(outbid.auction_id),
                    bidder_id=str(outbid.outbid_bidder_id),
                    previous_amount=outbid.previous_amount,
                    new_amount=outbid.new_amount,
                    new_leader_id=str(outbid.new_leader_id),
                    timestamp=datetime.now(timezone.utc),
                )
            )
            if await self._publish(user_channel(outbid.outbid_bidder_id), event):
                sent += 1
        return sent

    async def order_transition(self, order: OrderRecord, transition: str) -> bool:
        event = OrderTransitionEvent(
            data=OrderTransitionData(
                order_id=str(order.order_id),
                auction_id=str(order.auction_id),
                seller_id=str(order.seller_id),
                buyer_id=str(order.buyer_id),
                transition=transition,
                status=order.status,
                timestamp=datetime.now(timezone.utc),
            )
        )
        return await self._publish(f"order:{order.order_id}:events", event)

    async def auction_closed(
        self,
        auction_id: UUID,
        final_price,
        winner_id: UUID | None = None,
        order_id: UUID | None = None,
    ) -> bool:
        event = AuctionClosedEvent(
            data=AuctionClosedData(
                auction_id=str(auction_id),
                final_price=final_price,
                winner_id=str(winner_id) if winner_id else None,
                order_id=str(order_id) if order_id else None,
                timestamp=datetime.now(timezone.utc),
            )
        )
        return await self._publish(auction_channel(auction_id), event)
