"""Commission settlement schemas."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class VendorCommissionSplit(BaseModel):
    vendor_id: UUID
    revenue: Decimal
    commission_rate: Decimal
    commission: Decimal
    payout: Decimal


class CommissionSummary(BaseModel):
    order_id: UUID
    already_calculated: bool = False
    vendor_commission: Decimal = Decimal("0.00")
    platform_commission: Decimal = Decimal("0.00")
    vendor_id: UUID | None = None
    vendors_updated: int = 0
    splits: list[VendorCommissionSplit] = Field(default_factory=list)


class VendorLedgerTotals(BaseModel):
    """Vendor totals folded from the commission ledger."""
    vendor_id: UUID
    orders: int
    revenue: Decimal
    commission: Decimal
    payout: Decimal
