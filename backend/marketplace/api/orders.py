"""Order cancellation and commission endpoints with RBAC enforcement."""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import require_permission
from marketplace.core.exceptions import MarketplaceError, to_http_exception
from marketplace.db.base import get_db
from marketplace.models.order import Order
from marketplace.schemas.auth import CurrentUser
from marketplace.schemas.commission import CommissionSummary
from marketplace.schemas.order import (
    CancelRequest,
    CancellationEligibility,
    CancellationResult,
    CancellationStats,
    OrderResponse,
)
from marketplace.services.cancellation import OrderCancellationService
from marketplace.services.commission import CommissionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def _can_view(order: Order, user: CurrentUser) -> bool:
    if user.is_admin or order.user_id == user.id:
        return True
    return user.vendor_id is not None and order.vendor_id == user.vendor_id


@router.get("/admin/cancellation-stats", response_model=CancellationStats)
async def get_cancellation_stats(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    current_user: CurrentUser = Depends(require_permission("report:cancellations")),
    db: AsyncSession = Depends(get_db),
):
    """Cancelled order count, refunded amount and average order value (default: last 30 days)."""
    return await OrderCancellationService(db).get_cancellation_stats(start_date, end_date)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    current_user: CurrentUser = Depends(require_permission("order:read")),
    db: AsyncSession = Depends(get_db),
):
    order = await db.get(Order, order_id)
    if not order or not _can_view(order, current_user):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/cancel", response_model=CancellationResult)
async def cancel_order(
    order_id: UUID,
    body: CancelRequest,
    current_user: CurrentUser = Depends(require_permission("order:cancel")),
    db: AsyncSession = Depends(get_db),
):
    """Cancel an order; refund, restock and reservation release run best-effort."""
    try:
        result = await OrderCancellationService(db).cancel_order(
            order_id, current_user.id, body.reason, is_admin=current_user.is_admin
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    await db.commit()

    if result.failed_compensations:
        logger.warning(
            "Order %s cancelled with failed steps: %s",
            order_id, ", ".join(c.step for c in result.failed_compensations),
        )
    return result


@router.get("/{order_id}/can-cancel", response_model=CancellationEligibility)
async def can_cancel_order(
    order_id: UUID,
    current_user: CurrentUser = Depends(require_permission("order:read")),
    db: AsyncSession = Depends(get_db),
):
    return await OrderCancellationService(db).can_cancel_order(
        order_id, current_user.id, is_admin=current_user.is_admin
    )


@router.post("/{order_id}/commissions/recalculate", response_model=CommissionSummary)
async def recalculate_commissions(
    order_id: UUID,
    current_user: CurrentUser = Depends(require_permission("commission:recalculate")),
    db: AsyncSession = Depends(get_db),
):
    """Reverse whatever the order accrued and settle its commissions again."""
    try:
        summary = await CommissionService(db).recalculate_order_commissions(order_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    await db.commit()
    logger.info("Commissions recalculated for order %s by %s", order_id, current_user.id)
    return summary
