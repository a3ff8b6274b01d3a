"""Order, cancellation and refund schemas for API request/response."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from marketplace.models.order import OrderStatus, PaymentMethod, CommissionStatus
from marketplace.models.payment import RefundStatus


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    product_id: UUID
    variant_id: UUID | None
    variant_sku: str | None
    quantity: int
    price: Decimal


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    user_id: UUID
    status: OrderStatus
    subtotal: Decimal
    total: Decimal
    currency: str
    payment_method: PaymentMethod
    payment_intent_id: str | None
    notes: str | None
    cancellation_reason: str | None
    cancelled_at: datetime | None
    cancelled_by: UUID | None
    vendor_id: UUID | None
    vendor_commission: Decimal
    platform_commission: Decimal
    commission_status: CommissionStatus
    commission_calculated_at: datetime | None
    items: list[OrderItemResponse]
    created_at: datetime
    updated_at: datetime


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class RefundResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    amount: Decimal
    currency: str
    status: RefundStatus
    refund_reference: str
    payment_intent_id: str | None
    processed_at: datetime


class CompensationResult(BaseModel):
    """Outcome of one best-effort step run after an order was cancelled."""
    step: str
    target_id: UUID | None = None
    success: bool
    error: str | None = None


class CancellationResult(BaseModel):
    success: bool
    order: OrderResponse
    refund: RefundResponse | None = None
    message: str
    compensations: list[CompensationResult] = Field(default_factory=list)

    @property
    def failed_compensations(self) -> list[CompensationResult]:
        return [c for c in self.compensations if not c.success]


class CancellationEligibility(BaseModel):
    can_cancel: bool
    reason: str | None = None


class CancellationStats(BaseModel):
    total_cancelled: int
    total_refund_amount: Decimal
    avg_order_value: Decimal
    start_date: datetime
    end_date: datetime
