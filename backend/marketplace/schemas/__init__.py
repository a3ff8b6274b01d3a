from marketplace.schemas.inventory import (
    AvailabilityRequest, AvailabilityResult, ReserveRequest, ReservationResult,
    OperationResult, SweepResult, InventoryCreate, InventoryUpdate, InventoryResponse,
    RestockRequest, AdjustRequest, StockMutationResult,
)
from marketplace.schemas.order import (
    OrderResponse, CancelRequest, CancellationResult, CancellationEligibility,
    CancellationStats, CompensationResult,
)
from marketplace.schemas.commission import CommissionSummary, VendorLedgerTotals
from marketplace.schemas.payment import PaymentCreate, PaymentResponse, SettlementResult

__all__ = [
    "AvailabilityRequest", "AvailabilityResult", "ReserveRequest", "ReservationResult",
    "OperationResult", "SweepResult", "InventoryCreate", "InventoryUpdate", "InventoryResponse",
    "RestockRequest", "AdjustRequest", "StockMutationResult",
    "OrderResponse", "CancelRequest", "CancellationResult", "CancellationEligibility",
    "CancellationStats", "CompensationResult",
    "CommissionSummary", "VendorLedgerTotals",
    "PaymentCreate", "PaymentResponse", "SettlementResult",
]
