"""Inventory, reservation and stock alert endpoints with RBAC enforcement."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import require_permission
from marketplace.core.exceptions import MarketplaceError, to_http_exception
from marketplace.db.base import get_db
from marketplace.models.stock_alert import AlertStatus
from marketplace.schemas.auth import CurrentUser
from marketplace.schemas.inventory import (
    AdjustRequest,
    AvailabilityRequest,
    AvailabilityResult,
    InventoryCreate,
    InventoryListResponse,
    InventoryResponse,
    InventoryUpdate,
    OperationResult,
    ReleaseRequest,
    ReservationResult,
    ReserveRequest,
    RestockRequest,
    StockAlertListResponse,
    StockAlertResponse,
    StockHistoryResponse,
    StockMutationResult,
    StockTransactionListResponse,
    StockTransactionResponse,
    SweepResult,
)
from marketplace.services.inventory import InventoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory", tags=["inventory"])


# ── Availability & reservations ───────────────────


@router.post("/check-availability", response_model=AvailabilityResult)
async def check_availability(
    body: AvailabilityRequest,
    db: AsyncSession = Depends(get_db),
):
    """Public stock check used by product pages and checkout."""
    return await InventoryService(db).check_availability(body.product_id, body.variant_id, body.quantity)


@router.post("/reserve", response_model=ReservationResult, status_code=status.HTTP_201_CREATED)
async def reserve_stock(
    body: ReserveRequest,
    current_user: CurrentUser = Depends(require_permission("inventory:reserve")),
    db: AsyncSession = Depends(get_db),
):
    """Hold stock for a pending order until the reservation expires."""
    try:
        result = await InventoryService(db).reserve_stock(
            body.product_id,
            body.variant_id,
            body.quantity,
            current_user.id,
            body.order_id,
            body.expires_in_minutes,
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    await db.commit()
    return result


@router.post("/reserve/{reservation_id}/confirm", response_model=OperationResult)
async def confirm_reservation(
    reservation_id: UUID,
    current_user: CurrentUser = Depends(require_permission("inventory:reserve")),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await InventoryService(db).confirm_reservation(reservation_id, current_user.id)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    await db.commit()
    return result


@router.post("/reserve/{reservation_id}/release", response_model=OperationResult)
async def release_reservation(
    reservation_id: UUID,
    body: ReleaseRequest | None = None,
    current_user: CurrentUser = Depends(require_permission("inventory:reserve")),
    db: AsyncSession = Depends(get_db),
):
    reason = body.reason if body else "Order cancelled"
    try:
        result = await InventoryService(db).release_reserved_stock(reservation_id, reason)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    await db.commit()
    return result


@router.post("/release-expired", response_model=SweepResult)
async def release_expired(
    current_user: CurrentUser = Depends(require_permission("inventory:sweep")),
    db: AsyncSession = Depends(get_db),
):
    """Manually trigger the expiry sweep (the background sweeper runs it too)."""
    result = await InventoryService(db).release_expired_reservations()
    await db.commit()
    logger.info("Manual reservation sweep by %s: %d released", current_user.id, result.released_count)
    return result


# ── Listings, alerts & history ────────────────────


@router.get("", response_model=InventoryListResponse)
async def list_inventory(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
    low_stock: bool | None = None,
    out_of_stock: bool | None = None,
    product_id: UUID | None = None,
    current_user: CurrentUser = Depends(require_permission("inventory:read")),
    db: AsyncSession = Depends(get_db),
):
    """List inventory records with pagination and optional stock-level filters."""
    items, total = await InventoryService(db).list_inventory(page, size, low_stock, out_of_stock, product_id)
    return InventoryListResponse(
        items=[InventoryResponse.model_validate(inv) for inv in items],
        total=total,
        page=page,
        size=size,
    )


@router.get("/low-stock", response_model=list[InventoryResponse])
async def list_low_stock(
    limit: int = Query(50, ge=1, le=500),
    current_user: CurrentUser = Depends(require_permission("inventory:read")),
    db: AsyncSession = Depends(get_db),
):
    """Low-stock records, least available first."""
    items = await InventoryService(db).get_low_stock_products(limit)
    return [InventoryResponse.model_validate(inv) for inv in items]


@router.get("/out-of-stock", response_model=list[InventoryResponse])
async def list_out_of_stock(
    limit: int = Query(50, ge=1, le=500),
    current_user: CurrentUser = Depends(require_permission("inventory:read")),
    db: AsyncSession = Depends(get_db),
):
    items = await InventoryService(db).get_out_of_stock_products(limit)
    return [InventoryResponse.model_validate(inv) for inv in items]


@router.get("/alerts", response_model=StockAlertListResponse)
async def list_alerts(
    alert_status: AlertStatus | None = Query(AlertStatus.ACTIVE, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    current_user: CurrentUser = Depends(require_permission("inventory:read")),
    db: AsyncSession = Depends(get_db),
):
    alerts = await InventoryService(db).list_alerts(alert_status, limit)
    return StockAlertListResponse(
        items=[StockAlertResponse.model_validate(a) for a in alerts],
        count=len(alerts),
    )


@router.post("/alerts/{alert_id}/acknowledge", response_model=StockAlertResponse)
async def acknowledge_alert(
    alert_id: UUID,
    current_user: CurrentUser = Depends(require_permission("inventory:update")),
    db: AsyncSession = Depends(get_db),
):
    try:
        alert = await InventoryService(db).acknowledge_alert(alert_id, current_user.id)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    await db.commit()
    return StockAlertResponse.model_validate(alert)


@router.get("/history/{product_id}", response_model=list[StockHistoryResponse])
async def get_stock_history(
    product_id: UUID,
    variant_id: UUID | None = None,
    limit: int = Query(50, ge=1, le=500),
    current_user: CurrentUser = Depends(require_permission("inventory:read")),
    db: AsyncSession = Depends(get_db),
):
    """Stock movement audit trail for a product, newest first."""
    history = await InventoryService(db).get_stock_history(product_id, variant_id, limit)
    return [StockHistoryResponse.model_validate(h) for h in history]


# ── Inventory records ─────────────────────────────


@router.get("/{inventory_id}", response_model=InventoryResponse)
async def get_inventory(
    inventory_id: UUID,
    current_user: CurrentUser = Depends(require_permission("inventory:read")),
    db: AsyncSession = Depends(get_db),
):
    try:
        inventory = await InventoryService(db).get_inventory(inventory_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    return InventoryResponse.model_validate(inventory)


@router.post("", response_model=InventoryResponse, status_code=status.HTTP_201_CREATED)
async def create_inventory(
    body: InventoryCreate,
    current_user: CurrentUser = Depends(require_permission("inventory:create")),
    db: AsyncSession = Depends(get_db),
):
    """Create the inventory record for a product/variant (updates it when one exists)."""
    try:
        inventory, _ = await InventoryService(db).create_inventory(body, current_user.id)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    await db.commit()
    return InventoryResponse.model_validate(inventory)


@router.put("/{inventory_id}", response_model=InventoryResponse)
async def update_inventory(
    inventory_id: UUID,
    body: InventoryUpdate,
    current_user: CurrentUser = Depends(require_permission("inventory:update")),
    db: AsyncSession = Depends(get_db),
):
    """Update thresholds, location and supplier (quantities go through restock/adjust)."""
    service = InventoryService(db)
    try:
        inventory = await service.get_inventory(inventory_id, for_update=True)
        inventory = await service.update_settings(inventory, body)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    await db.commit()
    return InventoryResponse.model_validate(inventory)


@router.get("/{inventory_id}/history", response_model=StockTransactionListResponse)
async def get_inventory_transactions(
    inventory_id: UUID,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
    current_user: CurrentUser = Depends(require_permission("inventory:read")),
    db: AsyncSession = Depends(get_db),
):
    service = InventoryService(db)
    try:
        inventory = await service.get_inventory(inventory_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    items, total = await service.get_transactions(inventory, page, size)
    return StockTransactionListResponse(
        items=[StockTransactionResponse.model_validate(t) for t in items],
        total=total,
        page=page,
        size=size,
    )


@router.post("/{inventory_id}/restock", response_model=StockMutationResult)
async def restock_inventory(
    inventory_id: UUID,
    body: RestockRequest,
    current_user: CurrentUser = Depends(require_permission("inventory:update")),
    db: AsyncSession = Depends(get_db),
):
    service = InventoryService(db)
    try:
        inventory = await service.get_inventory(inventory_id, for_update=True)
        result = await service.add_stock(inventory, body.quantity, current_user.id, body.reason)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    await db.commit()
    return result


@router.post("/{inventory_id}/adjust", response_model=StockMutationResult)
async def adjust_inventory(
    inventory_id: UUID,
    body: AdjustRequest,
    current_user: CurrentUser = Depends(require_permission("inventory:adjust")),
    db: AsyncSession = Depends(get_db),
):
    """Manual stock correction to an absolute quantity."""
    service = InventoryService(db)
    try:
        inventory = await service.get_inventory(inventory_id, for_update=True)
        result = await service.adjust_stock(inventory, body.new_quantity, current_user.id, body.reason)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    await db.commit()
    return result


@router.delete("/{inventory_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_inventory(
    inventory_id: UUID,
    current_user: CurrentUser = Depends(require_permission("inventory:delete")),
    db: AsyncSession = Depends(get_db),
):
    service = InventoryService(db)
    try:
        inventory = await service.get_inventory(inventory_id, for_update=True)
        await service.delete_inventory(inventory)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    await db.commit()
