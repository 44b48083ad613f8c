"""Order schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class OrderRecord(BaseModel):
    """Schema for the order row."""

    order_id: UUID
    auction_id: UUID
    seller_id: UUID
    buyer_id: UUID
    total_price: Decimal
    status: str
    cancel_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "frozen": True}


class InvoiceRecord(BaseModel):
    invoice_id: UUID
    payment_method: str
    billing_address: str | None
    shipping_address: str
    payment_proof: str | None
    note: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ShipmentRecord(BaseModel):
    shipment_id: UUID
    carrier: str | None
    tracking_number: str | None
    shipping_date: datetime
    invoice_url: str | None
    proof_images: list[str] = []
    created_at: datetime

    model_config = {"from_attributes": True}


class ChatMessageRecord(BaseModel):
    message_id: UUID
    order_id: UUID
    sender_id: UUID
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}


class RatingRecord(BaseModel):
    rating_id: UUID
    from_user_id: UUID
    to_user_id: UUID
    auction_id: UUID
    score: int
    comment: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderRatings(BaseModel):
    buyer_to_seller: RatingRecord | None = None
    seller_to_buyer: RatingRecord | None = None


class WorkflowStep(BaseModel):
    step_id: str
    step_number: int
    title: str
    actor: Literal["buyer", "seller", "both"]
    status: str
    is_current: bool
    is_completed: bool


class OrderDetail(BaseModel):
    """Order plus its latest sub-records, chat window and ratings."""

    order: OrderRecord
    invoice: InvoiceRecord | None = None
    shipment: ShipmentRecord | None = None
    chat_messages: list[ChatMessageRecord] = []
    ratings: OrderRatings = OrderRatings()
    workflow: list[WorkflowStep] = []
    can_seller_cancel: bool = False


class PaymentDetailsCreate(BaseModel):
    payment_method: str = Field(..., max_length=100)
    shipping_address: str
    billing_address: str | None = None
    payment_proof: str | None = None
    note: str | None = None


class ShipmentCreate(BaseModel):
    carrier: str | None = Field(None, max_length=100)
    tracking_number: str | None = Field(None, max_length=100)
    shipping_date: datetime | None = None
    invoice_url: str | None = Field(None, max_length=500)
    proof_images: list[str] = []


class CancelOrderCreate(BaseModel):
    reason: str | None = None


class RatingCreate(BaseModel):
    score: int
    comment: str | None = None


class ChatMessageCreate(BaseModel):
    message: str = Field(..., max_length=4000)
