"""Order cancellation with best-effort compensation.

The cancellation itself (status, reason, actor, time) always commits once the
eligibility gate passes. The follow-up steps (refund record, commission
reversal, releasing open reservations, restock) each run in their own
SAVEPOINT; a failing step is logged and reported in the result, never raised.
"""

import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.exceptions import InvalidStateError, PermissionDeniedError
from marketplace.models.mixins import utcnow
from marketplace.models.order import Order, OrderStatus, CommissionStatus
from marketplace.models.payment import Refund, RefundStatus
from marketplace.models.vendor import CENTS
from marketplace.schemas.order import (
    CancellationEligibility,
    CancellationResult,
    CancellationStats,
    CompensationResult,
    OrderResponse,
    RefundResponse,
)
from marketplace.services.commission import CommissionService
from marketplace.services.inventory import InventoryService

logger = logging.getLogger(__name__)


class OrderCancellationService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)
        self.commissions = CommissionService(db)

    # ── Eligibility ────────────────────────────────

    @staticmethod
    def _ineligibility(order: Order, user_id: uuid.UUID, is_admin: bool) -> tuple[type[Exception], str, str] | None:
        """First rule the order fails as ``(error, message, short reason)``, or None."""
        if not is_admin and order.user_id != user_id:
            return PermissionDeniedError, "Unauthorized to cancel this order", "Unauthorized"
        if order.status == OrderStatus.CANCELLED:
            return InvalidStateError, "Order is already cancelled", "Order already cancelled"
        if order.status == OrderStatus.DELIVERED:
            return (
                InvalidStateError,
                "Delivered orders cannot be cancelled. Please initiate a return instead.",
                "Order already delivered",
            )
        if order.status == OrderStatus.SHIPPED and not is_admin:
            return (
                InvalidStateError,
                "Shipped orders can only be cancelled by admin. Please contact support.",
                "Shipped orders can only be cancelled by admin",
            )
        return None

    async def can_cancel_order(
        self, order_id: uuid.UUID, user_id: uuid.UUID, is_admin: bool = False
    ) -> CancellationEligibility:
        order = await self.db.get(Order, order_id)
        if order is None:
            return CancellationEligibility(can_cancel=False, reason="Order not found")
        failure = self._ineligibility(order, user_id, is_admin)
        if failure is not None:
            return CancellationEligibility(can_cancel=False, reason=failure[2])
        return CancellationEligibility(can_cancel=True)

    # ── Cancellation ───────────────────────────────

    async def cancel_order(
        self,
        order_id: uuid.UUID,
        user_id: uuid.UUID,
        reason: str,
        is_admin: bool = False,
    ) -> CancellationResult:
        order = await self.commissions.get_order(order_id, for_update=True)
        failure = self._ineligibility(order, user_id, is_admin)
        if failure is not None:
            error_cls, message, _ = failure
            raise error_cls(message)

        previous_status = order.status
        order.status = OrderStatus.CANCELLED
        order.cancellation_reason = reason
        order.cancelled_at = utcnow()
        order.cancelled_by = user_id
        await self.db.flush()
        logger.info("Order %s cancelled by %s (was %s)", order.order_number, user_id, previous_status.value)

        # Snapshot what the steps need; a rolled back step expires what it touched
        lines = [(item.id, item.product_id, item.variant_id, item.quantity) for item in order.items]
        commissions_computed = order.commission_status == CommissionStatus.COMPUTED

        compensations: list[CompensationResult] = []
        refund: Refund | None = None

        if previous_status == OrderStatus.PAID:
            result, refund = await self._compensate("refund", order_id, lambda: self._create_refund(order))
            compensations.append(result)
            if commissions_computed:
                result, _ = await self._compensate(
                    "commission_reversal", order_id, lambda: self.commissions.reverse_order_commissions(order)
                )
                compensations.append(result)

        # Reservation rows are locked before any inventory row, the order every release/confirm path uses
        reservations = await self.inventory.list_reservations_for_order(order_id, for_update=True)
        for reservation_id in [reservation.id for reservation in reservations]:
            result, _ = await self._compensate(
                "release_reservation",
                reservation_id,
                lambda: self.inventory.release_reserved_stock(reservation_id, "Order cancelled"),
            )
            compensations.append(result)

        for item_id, product_id, variant_id, quantity in lines:
            result, _ = await self._compensate(
                "restock",
                item_id,
                lambda: self.inventory.restock_product(
                    product_id, variant_id, quantity, user_id,
                    reason=f"Order cancelled: {order_id}", order_id=order_id,
                ),
            )
            compensations.append(result)

        failed = [c for c in compensations if not c.success]
        if failed:
            logger.warning("Order %s cancelled with %d failed compensation steps", order_id, len(failed))

        order = await self.commissions.get_order(order_id)
        return CancellationResult(
            success=True,
            order=OrderResponse.model_validate(order),
            refund=RefundResponse.model_validate(refund) if refund is not None else None,
            message="Order cancelled successfully",
            compensations=compensations,
        )

    async def _compensate(
        self,
        step: str,
        target_id: uuid.UUID,
        action: Callable[[], Awaitable[Any]],
    ) -> tuple[CompensationResult, Any]:
        try:
            async with self.db.begin_nested():
                value = await action()
        except Exception as exc:
            logger.error("Compensation step %s failed for %s", step, target_id, exc_info=True)
            return CompensationResult(step=step, target_id=target_id, success=False, error=str(exc)), None
        return CompensationResult(step=step, target_id=target_id, success=True), value

    async def _create_refund(self, order: Order) -> Refund:
        """Record the refund request; the gateway round-trip happens elsewhere."""
        now = utcnow()
        refund = Refund(
            id=uuid.uuid4(),
            order_id=order.id,
            amount=order.total,
            currency=order.currency,
            status=RefundStatus.PENDING,
            refund_reference=f"refund_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:8]}",
            payment_intent_id=order.payment_intent_id,
            processed_at=now,
        )
        self.db.add(refund)
        await self.db.flush()
        logger.info("Refund %s recorded for order %s: %s %s", refund.refund_reference, order.id, refund.amount, refund.currency)
        return refund

    # ── Reporting ──────────────────────────────────

    async def get_cancellation_stats(
        self, start_date: datetime | None = None, end_date: datetime | None = None
    ) -> CancellationStats:
        end_date = end_date or utcnow()
        start_date = start_date or end_date - timedelta(days=settings.CANCELLATION_STATS_WINDOW_DAYS)

        row = (await self.db.execute(
            select(
                func.count(Order.id),
                func.coalesce(func.sum(Order.total), 0),
                func.coalesce(func.avg(Order.total), 0),
            ).where(
                Order.status == OrderStatus.CANCELLED,
                Order.cancelled_at >= start_date,
                Order.cancelled_at <= end_date,
            )
        )).one()
        total_cancelled, total_refund, avg_value = row
        return CancellationStats(
            total_cancelled=total_cancelled,
            total_refund_amount=Decimal(str(total_refund)).quantize(CENTS),
            avg_order_value=Decimal(str(avg_value)).quantize(CENTS),
            start_date=start_date,
            end_date=end_date,
        )
