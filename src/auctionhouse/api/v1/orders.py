"""Order fulfillment API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from auctionhouse.api.deps import CurrentUserId, OrderServiceDep
from auctionhouse.schemas.order import (
    CancelOrderCreate,
    ChatMessageCreate,
    ChatMessageRecord,
    OrderDetail,
    OrderRecord,
    PaymentDetailsCreate,
    RatingCreate,
    RatingRecord,
    ShipmentCreate,
)

router = APIRouter()


@router.get("/{order_id}", response_model=OrderDetail)
async def get_order(
    order_id: UUID,
    current_user_id: CurrentUserId,
    order_service: OrderServiceDep,
    chat_limit: int | None = Query(None, ge=1, le=500),
):
    """Order detail with invoice, shipment, chat window, ratings and workflow."""
    return await order_service.get_order_detail(order_id, current_user_id, chat_limit)


@router.post("/{order_id}/payment", response_model=OrderRecord)
async def submit_payment_details(
    order_id: UUID,
    data: PaymentDetailsCreate,
    current_user_id: CurrentUserId,
    order_service: OrderServiceDep,
):
    return await order_service.submit_payment_details(
        order_id,
        current_user_id,
        payment_method=data.payment_method,
        shipping_address=data.shipping_address,
        billing_address=data.billing_address,
        payment_proof=data.payment_proof,
        note=data.note,
    )


@router.post("/{order_id}/shipment", response_model=OrderRecord)
async def confirm_payment_and_ship(
    order_id: UUID,
    data: ShipmentCreate,
    current_user_id: CurrentUserId,
    order_service: OrderServiceDep,
):
    return await order_service.confirm_payment_and_ship(
        order_id,
        current_user_id,
        carrier=data.carrier,
        tracking_number=data.tracking_number,
        shipping_date=data.shipping_date,
        invoice_url=data.invoice_url,
        proof_images=data.proof_images,
    )


@router.post("/{order_id}/delivery", response_model=OrderRecord)
async def confirm_delivery(
    order_id: UUID,
    current_user_id: CurrentUserId,
    order_service: OrderServiceDep,
):
    return await order_service.confirm_delivery(order_id, current_user_id)


@router.post("/{order_id}/cancel", response_model=OrderRecord)
async def cancel_order(
    order_id: UUID,
    data: CancelOrderCreate,
    current_user_id: CurrentUserId,
    order_service: OrderServiceDep,
):
    """Seller cancels before delivery; the buyer receives a -1 rating."""
    return await order_service.cancel_order(order_id, current_user_id, data.reason)


@router.post("/{order_id}/ratings", response_model=RatingRecord)
async def rate_order(
    order_id: UUID,
    data: RatingCreate,
    current_user_id: CurrentUserId,
    order_service: OrderServiceDep,
):
    return await order_service.rate_order(order_id, current_user_id, data.score, data.comment)


@router.post("/{order_id}/messages", response_model=ChatMessageRecord, status_code=status.HTTP_201_CREATED)
async def post_chat_message(
    order_id: UUID,
    data: ChatMessageCreate,
    current_user_id: CurrentUserId,
    order_service: OrderServiceDep,
):
    return await order_service.post_chat_message(order_id, current_user_id, data.message)
