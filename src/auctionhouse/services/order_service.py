"""Order fulfillment state machine.

awaiting_payment_details
    -> payment_confirmed_awaiting_delivery   (buyer submits payment details)
    -> delivery_confirmed_ready_to_rate      (seller confirms payment and ships)
    -> transaction_completed                 (buyer confirms delivery)

The seller may cancel from any of the first three states. Ratings and chat
are allowed in any state, for participants only.
"""

import logging
from typing import Awaitable, Callable, NamedTuple
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from auctionhouse.core.config import settings
from auctionhouse.core.exceptions import OrderError, OrderErrorCode
from auctionhouse.middleware.metrics import record_order_transition
from auctionhouse.models.order import (
    Order,
    OrderChatMessage,
    OrderInvoice,
    OrderShipment,
    OrderStatus,
    Rating,
)
from auctionhouse.schemas.order import (
    ChatMessageRecord,
    InvoiceRecord,
    OrderDetail,
    OrderRatings,
    OrderRecord,
    RatingRecord,
    ShipmentRecord,
    WorkflowStep,
)
from auctionhouse.services.ledger import (
    get_auction,
    get_highest_bid,
    is_auction_closed,
    lock_order,
    utcnow,
)
from auctionhouse.services.notification_service import NotificationService
from auctionhouse.services.rating_service import RatingService, validate_score

logger = logging.getLogger(__name__)

CANCEL_RATING_COMMENT = "Seller canceled the transaction"
MIN_CHAT_WINDOW = 10

STATUS_FLOW = [
    OrderStatus.AWAITING_PAYMENT_DETAILS,
    OrderStatus.PAYMENT_CONFIRMED_AWAITING_DELIVERY,
    OrderStatus.DELIVERY_CONFIRMED_READY_TO_RATE,
    OrderStatus.TRANSACTION_COMPLETED,
]

CANCELABLE_STATUSES = frozenset(
    {
        OrderStatus.AWAITING_PAYMENT_DETAILS.value,
        OrderStatus.PAYMENT_CONFIRMED_AWAITING_DELIVERY.value,
        OrderStatus.DELIVERY_CONFIRMED_READY_TO_RATE.value,
    }
)


class Transition(NamedTuple):
    actor: str
    sources: frozenset[str]
    target: OrderStatus


TRANSITIONS: dict[str, Transition] = {
    "submit_payment": Transition(
        "buyer",
        frozenset({OrderStatus.AWAITING_PAYMENT_DETAILS.value}),
        OrderStatus.PAYMENT_CONFIRMED_AWAITING_DELIVERY,
    ),
    "confirm_shipment": Transition(
        "seller",
        frozenset({OrderStatus.PAYMENT_CONFIRMED_AWAITING_DELIVERY.value}),
        OrderStatus.DELIVERY_CONFIRMED_READY_TO_RATE,
    ),
    "confirm_delivery": Transition(
        "buyer",
        frozenset({OrderStatus.DELIVERY_CONFIRMED_READY_TO_RATE.value}),
        OrderStatus.TRANSACTION_COMPLETED,
    ),
    "cancel": Transition("seller", CANCELABLE_STATUSES, OrderStatus.CANCELED_BY_SELLER),
}

WORKFLOW = [
    ("payment", "Provide payment and shipping details", "buyer", OrderStatus.AWAITING_PAYMENT_DETAILS),
    ("seller-confirm", "Confirm payment and ship", "seller", OrderStatus.PAYMENT_CONFIRMED_AWAITING_DELIVERY),
    ("delivery", "Confirm delivery", "buyer", OrderStatus.DELIVERY_CONFIRMED_READY_TO_RATE),
    ("feedback", "Rate the transaction", "both", OrderStatus.TRANSACTION_COMPLETED),
]


def can_seller_cancel(status: str | None) -> bool:
    return status in CANCELABLE_STATUSES


def check_transition(order: Order, actor_id: UUID, action: str) -> Transition:
    """Validate a transition; order of checks is actor first, then state.

    Raises:
        OrderError: ORDER_FORBIDDEN or ORDER_INVALID_STATE
    """
    transition = TRANSITIONS[action]
    expected = order.buyer_id if transition.actor == "buyer" else order.seller_id
    if actor_id != expected:
        raise OrderError(OrderErrorCode.ORDER_FORBIDDEN, order_id=order.order_id, action=action)
    if order.status not in transition.sources:
        raise OrderError(
            OrderErrorCode.ORDER_INVALID_STATE,
            order_id=order.order_id,
            action=action,
            status=order.status,
        )
    return transition


def workflow_steps(status: str) -> list[WorkflowStep]:
    """Ordered fulfillment steps with the current one flagged."""
    flow = [s.value for s in STATUS_FLOW]
    current = flow.index(status) if status in flow else None
    steps = []
    for number, (step_id, title, actor, step_status) in enumerate(WORKFLOW, start=1):
        index = flow.index(step_status.value)
        steps.append(
            WorkflowStep(
                step_id=step_id,
                step_number=number,
                title=title,
                actor=actor,
                status=step_status.value,
                is_current=current == index,
                is_completed=current is not None and index < current,
            )
        )
    return steps


def _require(value, code: OrderErrorCode = OrderErrorCode.ORDER_INVALID_INPUT) -> None:
    if not value:
        raise OrderError(code)


def _clean(text: str | None) -> str | None:
    if text is None:
        return None
    return text.strip() or None


class OrderService:
    """Service class for order operations."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationService | None = None,
        chat_limit: int = settings.CHAT_HISTORY_LIMIT,
    ):
        self.db = db
        self.notifier = notifier
        self.chat_limit = chat_limit
        self.ratings = RatingService(db)

    # ==================== Creation ====================

    async def ensure_order(self, auction_id: UUID) -> OrderRecord | None:
        """Return the auction's order, creating it on first access after closure.

        Concurrent creators race on the unique auction_id index; the loser's
        insert is a no-op and both read the same row back.

        Args:
            auction_id: Auction UUID

        Returns:
            The order, or None if the auction is not closed or nobody won it
        """
        _require(auction_id)

        auction = await get_auction(self.db, auction_id)
        if auction is None or not is_auction_closed(auction):
            return None

        existing = await self.get_order_by_auction(auction_id)
        if existing is not None:
            return existing

        winner = await get_highest_bid(self.db, auction_id)
        if winner is None:
            return None

        try:
            await self.db.execute(
                pg_insert(Order)
                .values(
                    auction_id=auction_id,
                    seller_id=auction.seller_id,
                    buyer_id=winner.bidder_id,
                    total_price=auction.current_price,
                    status=OrderStatus.AWAITING_PAYMENT_DETAILS.value,
                )
                .on_conflict_do_nothing(index_elements=["auction_id"])
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        order = await self.get_order_by_auction(auction_id)
        logger.info(
            "Order ensured",
            extra={"auction_id": auction_id, "order_id": order.order_id, "buyer_id": order.buyer_id},
        )
        return order

    async def get_order_by_auction(self, auction_id: UUID) -> OrderRecord | None:
        result = await self.db.execute(
            select(Order)
            .where(Order.auction_id == auction_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        return OrderRecord.model_validate(order) if order else None

    # ==================== Transitions ====================

    async def _transition(
        self,
        order_id: UUID,
        actor_id: UUID,
        action: str,
        apply: Callable[[Order], Awaitable[None]] | None = None,
    ) -> OrderRecord:
        try:
            order = await lock_order(self.db, order_id)
            if order is None:
                raise OrderError(OrderErrorCode.ORDER_NOT_FOUND, order_id=order_id)

            transition = check_transition(order, actor_id, action)
            if apply is not None:
                await apply(order)
            order.status = transition.target.value

            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        record = OrderRecord.model_validate(order)
        record_order_transition(action)
        logger.info(
            f"Order transition {action}",
            extra={"order_id": order_id, "status": record.status},
        )
        if self.notifier is not None:
            await self.notifier.order_transition(record, action)
        return record

    async def submit_payment_details(
        self,
        order_id: UUID,
        buyer_id: UUID,
        payment_method: str,
        shipping_address: str,
        billing_address: str | None = None,
        payment_proof: str | None = None,
        note: str | None = None,
    ) -> OrderRecord:
        """Buyer provides payment and shipping details.

        Raises:
            OrderError: ORDER_INVALID_INPUT, ORDER_PAYMENT_DETAILS_REQUIRED,
                ORDER_NOT_FOUND, ORDER_FORBIDDEN, ORDER_INVALID_STATE
        """
        _require(order_id and buyer_id)
        method = _clean(payment_method)
        shipping = _clean(shipping_address)
        if not method or not shipping:
            raise OrderError(OrderErrorCode.ORDER_PAYMENT_DETAILS_REQUIRED, order_id=order_id)

        async def append_invoice(order: Order) -> None:
            self.db.add(
                OrderInvoice(
                    order_id=order.order_id,
                    payment_method=method,
                    shipping_address=shipping,
                    billing_address=_clean(billing_address),
                    payment_proof=_clean(payment_proof),
                    note=_clean(note),
                    created_at=utcnow(),
                )
            )

        return await self._transition(order_id, buyer_id, "submit_payment", append_invoice)

    async def confirm_payment_and_ship(
        self,
        order_id: UUID,
        seller_id: UUID,
        carrier: str | None = None,
        tracking_number: str | None = None,
        shipping_date=None,
        invoice_url: str | None = None,
        proof_images: list[str] | None = None,
    ) -> OrderRecord:
        """Seller confirms the payment arrived and records the shipment."""
        _require(order_id and seller_id)

        async def append_shipment(order: Order) -> None:
            now = utcnow()
            self.db.add(
                OrderShipment(
                    order_id=order.order_id,
                    carrier=_clean(carrier),
                    tracking_number=_clean(tracking_number),
                    shipping_date=shipping_date or now,
                    invoice_url=_clean(invoice_url),
                    proof_images=[p for p in (proof_images or []) if p],
                    created_at=now,
                )
            )

        return await self._transition(order_id, seller_id, "confirm_shipment", append_shipment)

    async def confirm_delivery(self, order_id: UUID, buyer_id: UUID) -> OrderRecord:
        _require(order_id and buyer_id)
        return await self._transition(order_id, buyer_id, "confirm_delivery")

    async def cancel_order(self, order_id: UUID, seller_id: UUID, reason: str | None = None) -> OrderRecord:
        """Seller cancels; the buyer automatically receives a -1 rating.

        Raises:
            OrderError: ORDER_INVALID_INPUT, ORDER_NOT_FOUND, ORDER_FORBIDDEN,
                ORDER_INVALID_STATE
        """
        _require(order_id and seller_id)
        reason = _clean(reason)

        async def cancel(order: Order) -> None:
            order.cancel_reason = reason
            await self.ratings.upsert_rating(
                from_user_id=order.seller_id,
                to_user_id=order.buyer_id,
                auction_id=order.auction_id,
                score=-1,
                comment=reason or CANCEL_RATING_COMMENT,
            )

        return await self._transition(order_id, seller_id, "cancel", cancel)

    # ==================== Participant actions ====================

    async def _lock_for_participant(self, order_id: UUID, user_id: UUID) -> Order:
        order = await lock_order(self.db, order_id)
        if order is None:
            raise OrderError(OrderErrorCode.ORDER_NOT_FOUND, order_id=order_id)
        if user_id not in (order.buyer_id, order.seller_id):
            raise OrderError(OrderErrorCode.ORDER_FORBIDDEN, order_id=order_id)
        return order

    async def rate_order(
        self, order_id: UUID, user_id: UUID, score: int, comment: str | None = None
    ) -> RatingRecord:
        """Rate the counterparty. Any state; re-rating replaces the earlier score.

        Raises:
            OrderError: ORDER_INVALID_INPUT, RATING_INVALID_SCORE,
                ORDER_NOT_FOUND, ORDER_FORBIDDEN
        """
        _require(order_id and user_id)
        score = validate_score(score)

        try:
            # The order lock serializes ratings on this order
            order = await self._lock_for_participant(order_id, user_id)
            counterparty = order.seller_id if user_id == order.buyer_id else order.buyer_id
            rating = await self.ratings.upsert_rating(
                from_user_id=user_id,
                to_user_id=counterparty,
                auction_id=order.auction_id,
                score=score,
                comment=_clean(comment),
            )
            record = RatingRecord.model_validate(rating)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        record_order_transition("rate")
        return record

    async def post_chat_message(self, order_id: UUID, sender_id: UUID, message: str) -> ChatMessageRecord:
        """Append a chat message from a participant.

        Raises:
            OrderError: ORDER_INVALID_INPUT, ORDER_CHAT_EMPTY, ORDER_NOT_FOUND,
                ORDER_FORBIDDEN
        """
        _require(order_id and sender_id)
        text = _clean(message)
        if not text:
            raise OrderError(OrderErrorCode.ORDER_CHAT_EMPTY, order_id=order_id)

        try:
            await self._lock_for_participant(order_id, sender_id)
            chat = OrderChatMessage(
                order_id=order_id,
                sender_id=sender_id,
                message=text,
                created_at=utcnow(),
            )
            self.db.add(chat)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return ChatMessageRecord.model_validate(chat)

    # ==================== Reads ====================

    async def list_messages(self, order_id: UUID, limit: int | None = None) -> list[ChatMessageRecord]:
        """Most recent messages, returned oldest first. The window is never below 10."""
        window = max(limit if limit is not None else self.chat_limit, MIN_CHAT_WINDOW)
        result = await self.db.execute(
            select(OrderChatMessage)
            .where(OrderChatMessage.order_id == order_id)
            .order_by(OrderChatMessage.created_at.desc())
            .limit(window)
        )
        messages = list(result.scalars().all())
        messages.reverse()
        return [ChatMessageRecord.model_validate(m) for m in messages]

    async def _latest(self, model, order_id: UUID):
        result = await self.db.execute(
            select(model)
            .where(model.order_id == order_id)
            .order_by(model.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _ratings(self, order: Order) -> OrderRatings:
        result = await self.db.execute(
            select(Rating).where(
                and_(
                    Rating.auction_id == order.auction_id,
                    or_(
                        and_(Rating.from_user_id == order.buyer_id, Rating.to_user_id == order.seller_id),
                        and_(Rating.from_user_id == order.seller_id, Rating.to_user_id == order.buyer_id),
                    ),
                )
            )
        )
        ratings = OrderRatings()
        for rating in result.scalars().all():
            record = RatingRecord.model_validate(rating)
            if rating.from_user_id == order.buyer_id:
                ratings.buyer_to_seller = record
            else:
                ratings.seller_to_buyer = record
        return ratings

    async def get_order_detail(
        self, order_id: UUID, viewer_id: UUID, chat_limit: int | None = None
    ) -> OrderDetail:
        """Order with latest invoice and shipment, chat window, ratings and workflow.

        Raises:
            OrderError: ORDER_NOT_FOUND, ORDER_FORBIDDEN
        """
        result = await self.db.execute(select(Order).where(Order.order_id == order_id))
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderError(OrderErrorCode.ORDER_NOT_FOUND, order_id=order_id)
        if viewer_id not in (order.buyer_id, order.seller_id):
            raise OrderError(OrderErrorCode.ORDER_FORBIDDEN, order_id=order_id)

        invoice = await self._latest(OrderInvoice, order_id)
        shipment = await self._latest(OrderShipment, order_id)

        return OrderDetail(
            order=OrderRecord.model_validate(order),
            invoice=InvoiceRecord.model_validate(invoice) if invoice else None,
            shipment=ShipmentRecord.model_validate(shipment) if shipment else None,
            chat_messages=await self.list_messages(order_id, chat_limit),
            ratings=await self._ratings(order),
            workflow=workflow_steps(order.status),
            can_seller_cancel=can_seller_cancel(order.status),
        )
