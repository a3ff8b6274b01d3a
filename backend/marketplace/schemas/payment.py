"""Payment schemas for API request/response."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from marketplace.models.payment import PaymentStatus, PaymentGateway
from marketplace.schemas.commission import CommissionSummary


class PaymentBase(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    gateway: PaymentGateway
    note: str | None = None
    reference: str | None = Field(None, max_length=255)


class PaymentCreate(PaymentBase):
    order_id: UUID


class PaymentConfirm(BaseModel):
    """Manual confirmation by an admin (bank transfer, manual mobile money)."""
    transaction_id: str | None = Field(None, max_length=255)
    gateway_response: dict | None = None
    note: str | None = None


class PaymentFail(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    gateway_response: dict | None = None


class PaymentResponse(PaymentBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    status: PaymentStatus
    transaction_id: str | None
    gateway_response: dict | None
    processed_by: UUID | None
    created_at: datetime
    updated_at: datetime


class SettlementResult(BaseModel):
    order_id: UUID
    commission: CommissionSummary | None = None
    confirmed_reservations: int = 0
    failures: list[str] = Field(default_factory=list)


class PaymentConfirmResponse(BaseModel):
    payment: PaymentResponse
    settlement: SettlementResult
