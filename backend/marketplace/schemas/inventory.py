"""Inventory, reservation and stock audit schemas for request/response."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from marketplace.models.inventory import StockTransactionType
from marketplace.models.stock_alert import AlertStatus, AlertType
from marketplace.models.stock_history import StockHistoryType
from marketplace.models.stock_reservation import ReservationStatus


# ── Availability & reservations ───────────────────

class AvailabilityRequest(BaseModel):
    product_id: UUID
    variant_id: UUID | None = None
    quantity: int = Field(1, ge=1)


class AvailabilityResult(BaseModel):
    """Soft-failure result: an unavailable product is not an error."""
    available: bool
    stock: int
    reason: str | None = None
    requested: int | None = None
    low_stock: bool | None = None
    out_of_stock: bool | None = None


class ReserveRequest(BaseModel):
    product_id: UUID
    variant_id: UUID | None = None
    quantity: int = Field(..., ge=1)
    order_id: UUID | None = None
    expires_in_minutes: int | None = Field(None, ge=1, le=24 * 60)


class ReservationResult(BaseModel):
    success: bool
    reservation_id: UUID
    expires_at: datetime
    message: str


class ReleaseRequest(BaseModel):
    reason: str = Field("Order cancelled", max_length=500)


class OperationResult(BaseModel):
    """Outcome of a release or confirm; ``success=False`` marks an idempotent no-op."""
    success: bool
    message: str
    new_stock: int | None = None


class SweepFailure(BaseModel):
    reservation_id: UUID
    error: str


class SweepResult(BaseModel):
    success: bool
    released_count: int
    failed: list[SweepFailure] = Field(default_factory=list)
    purged_count: int = 0
    message: str


class ReservationResponse(BaseModel):
    id: UUID
    inventory_id: UUID
    product_id: UUID
    variant_id: UUID | None
    quantity: int
    user_id: UUID
    order_id: UUID | None
    status: ReservationStatus
    expires_at: datetime
    confirmed_at: datetime | None
    released_at: datetime | None
    reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Inventory records ─────────────────────────────

class InventoryLocation(BaseModel):
    warehouse: str | None = Field(None, max_length=100)
    aisle: str | None = Field(None, max_length=50)
    shelf: str | None = Field(None, max_length=50)
    bin: str | None = Field(None, max_length=50)


class SupplierInfo(BaseModel):
    supplier_name: str | None = Field(None, max_length=255)
    supplier_contact_email: str | None = Field(None, max_length=255)
    supplier_contact_phone: str | None = Field(None, max_length=50)
    supplier_lead_time_days: int | None = Field(None, ge=0)


class InventorySettings(InventoryLocation, SupplierInfo):
    """Thresholds, location and supplier; quantities change through restock/adjust only."""
    low_stock_threshold: int | None = Field(None, ge=0)
    reorder_point: int | None = Field(None, ge=0)
    max_stock_level: int | None = Field(None, ge=0)


class InventoryCreate(InventorySettings):
    """Create an inventory record, or top up an existing one for the same product/variant."""
    product_id: UUID
    variant_id: UUID | None = None
    sku: str = Field(..., min_length=1, max_length=100)
    current_stock: int = Field(0, ge=0)


class InventoryUpdate(InventorySettings):
    pass


class RestockRequest(BaseModel):
    quantity: int = Field(..., ge=1)
    reason: str = Field("Restock", max_length=500)


class AdjustRequest(BaseModel):
    """Manual correction to an absolute stock level."""
    new_quantity: int = Field(..., ge=0)
    reason: str = Field(..., min_length=1, max_length=500)


class StockMutationResult(BaseModel):
    success: bool
    previous_stock: int
    new_stock: int
    difference: int | None = None
    message: str


class InventoryResponse(BaseModel):
    id: UUID
    product_id: UUID
    variant_id: UUID | None
    sku: str
    current_stock: int
    reserved_stock: int
    available_stock: int
    low_stock_threshold: int
    reorder_point: int
    max_stock_level: int
    is_low_stock: bool
    is_out_of_stock: bool
    last_restocked_at: datetime | None
    last_restocked_by: UUID | None
    warehouse: str | None
    aisle: str | None
    shelf: str | None
    bin: str | None
    supplier_name: str | None
    supplier_contact_email: str | None
    supplier_contact_phone: str | None
    supplier_lead_time_days: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class InventoryListResponse(BaseModel):
    """Paginated list of inventory items."""
    items: list[InventoryResponse]
    total: int
    page: int
    size: int


# ── Audit trail & alerts ──────────────────────────

class StockTransactionResponse(BaseModel):
    id: UUID
    type: StockTransactionType
    quantity: int
    previous_stock: int
    new_stock: int
    reason: str | None
    order_id: UUID | None
    performed_by: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class StockTransactionListResponse(BaseModel):
    items: list[StockTransactionResponse]
    total: int
    page: int
    size: int


class StockHistoryResponse(BaseModel):
    id: UUID
    inventory_id: UUID
    product_id: UUID
    variant_id: UUID | None
    type: StockHistoryType
    quantity: int
    previous_stock: int
    new_stock: int
    order_id: UUID | None
    user_id: UUID | None
    reason: str | None
    details: dict | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class StockAlertResponse(BaseModel):
    id: UUID
    inventory_id: UUID
    product_id: UUID
    variant_id: UUID | None
    type: AlertType
    threshold: int
    current_stock: int
    status: AlertStatus
    acknowledged_by: UUID | None
    acknowledged_at: datetime | None
    resolved_at: datetime | None
    notification_sent: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class StockAlertListResponse(BaseModel):
    items: list[StockAlertResponse]
    count: int
