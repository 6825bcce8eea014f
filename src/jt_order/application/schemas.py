# src/jt_order/application/schemas.py
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class ValidateOrderRequest(BaseModel):
    action: Literal["accept", "reject"]
    shipping_fee: int | None = Field(None, ge=0)
    service_fee: int | None = Field(None, ge=0)
    rejection_reason: str | None = None


class FinalValidateRequest(BaseModel):
    action: Literal["accept", "reject"]
    rejection_reason: str | None = None


class ProofRequest(BaseModel):
    proof_url: str

    @field_validator("proof_url")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("proof_url must not be blank")
        return v.strip()


class CheckoutItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    note: str | None = None


class CheckoutDPRequest(BaseModel):
    trip_id: str
    items: list[CheckoutItemRequest] = Field(..., min_length=1)
    participant_id: str | None = None
    guest_id: str | None = None

    @model_validator(mode="after")
    def single_buyer(self) -> "CheckoutDPRequest":
        if (self.participant_id is None) == (self.guest_id is None):
            raise ValueError("Exactly one of participant_id or guest_id must be set")
        return self


class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    product_type: str
    price_at_order: int
    quantity: int
    item_subtotal: int
    markup_type: str
    markup_value: float
    note: str | None = None


class OrderResponse(BaseModel):
    id: str
    order_code: str
    trip_id: str
    status: str
    participant_id: str | None = None
    guest_id: str | None = None
    total_price: int
    dp_amount: int
    final_amount: int
    shipping_fee: int
    service_fee: int
    platform_commission: int
    final_breakdown: dict[str, Any] | None = None
    dp_paid_at: datetime | None = None
    validated_at: datetime | None = None
    validated_by: str | None = None
    rejection_reason: str | None = None
    items: list[OrderItemResponse] = []


class ValidateOrderResponse(BaseModel):
    order: OrderResponse
    payment_link: str | None = None


class CheckoutDPResponse(BaseModel):
    order: OrderResponse
    dp_amount: int
    payment_link: str


class AwaitingValidationItem(BaseModel):
    order: OrderResponse
    is_overdue: bool


class AwaitingValidationResponse(BaseModel):
    count: int
    orders: list[AwaitingValidationItem]


class AutoRejectResponse(BaseModel):
    total: int
    rejected: list[str]
    failed: int
