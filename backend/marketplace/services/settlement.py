"""Post-payment settlement: mark the order paid, accrue commissions, turn holds into sales."""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.order import Order, OrderStatus
from marketplace.schemas.payment import SettlementResult
from marketplace.services.commission import CommissionService
from marketplace.services.inventory import InventoryService

logger = logging.getLogger(__name__)


async def settle_paid_order(db: AsyncSession, order: Order, user_id: uuid.UUID | None) -> SettlementResult:
    """Run the settlement steps for an order whose payment just completed.

    Failures are logged and listed on the result; the payment itself is never
    rolled back because of them.
    """
    order_id = order.id
    result = SettlementResult(order_id=order_id)

    if order.status == OrderStatus.CANCELLED:
        logger.warning("Payment completed for cancelled order %s, nothing to settle", order.order_number)
        result.failures.append("Order is cancelled")
        return result

    if order.status == OrderStatus.PENDING:
        order.status = OrderStatus.PAID
        await db.flush()
        logger.info("Order %s marked paid", order.order_number)

    try:
        async with db.begin_nested():
            result.commission = await CommissionService(db).calculate_order_commissions(order)
    except Exception as exc:
        logger.error("Commission calculation failed for order %s", order_id, exc_info=True)
        result.failures.append(f"commission: {exc}")

    inventory = InventoryService(db)
    for reservation in await inventory.list_reservations_for_order(order_id):
        reservation_id = reservation.id
        try:
            async with db.begin_nested():
                outcome = await inventory.confirm_reservation(reservation_id, user_id)
            if outcome.success:
                result.confirmed_reservations += 1
        except Exception as exc:
            logger.error("Failed to confirm reservation %s for order %s", reservation_id, order_id, exc_info=True)
            result.failures.append(f"reservation {reservation_id}: {exc}")

    logger.info(
        "Order %s settled: %d reservations confirmed, %d failures",
        order_id, result.confirmed_reservations, len(result.failures),
    )
    return result
