"""Commission settlement for paid orders.

Each vendor on an order earns ``revenue - commission`` where the commission is
``revenue * vendor.commission_rate / 100``. Vendor running totals are kept in
step with an append-only ledger (``commission_entries``): every accrual is
undone by a signed reversal before an order is settled again, so the totals
never count the same order twice.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.core.exceptions import InvalidStateError, NotFoundError
from marketplace.models.commission import CommissionEntry, CommissionEntryKind
from marketplace.models.mixins import utcnow
from marketplace.models.order import Order, OrderItem, OrderStatus, CommissionStatus
from marketplace.models.vendor import Vendor
from marketplace.schemas.commission import CommissionSummary, VendorCommissionSplit, VendorLedgerTotals

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class CommissionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_order(self, order_id: uuid.UUID, for_update: bool = False) -> Order:
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items).selectinload(OrderItem.product))
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        order = (await self.db.execute(stmt)).scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def _lock_vendors(self, vendor_ids: list[uuid.UUID]) -> dict[uuid.UUID, Vendor]:
        if not vendor_ids:
            return {}
        result = await self.db.execute(
            select(Vendor)
            .where(Vendor.id.in_(vendor_ids))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return {vendor.id: vendor for vendor in result.scalars().all()}

    async def calculate_order_commissions(self, order: Order) -> CommissionSummary:
        if order.commission_status == CommissionStatus.COMPUTED:
            logger.info("Commissions already calculated for order %s", order.order_number)
            return CommissionSummary(
                order_id=order.id,
                already_calculated=True,
                vendor_commission=order.vendor_commission,
                platform_commission=order.platform_commission,
                vendor_id=order.vendor_id,
            )

        # Group line revenue by vendor, keeping the order vendors first appear in
        revenue_by_vendor: dict[uuid.UUID, Decimal] = {}
        for item in order.items:
            product = item.product
            if product is None:
                logger.warning("Product %s not found for order %s, skipping", item.product_id, order.order_number)
                continue
            if product.vendor_id is None:
                logger.warning("Product %s has no vendor, skipping", product.id)
                continue
            revenue_by_vendor[product.vendor_id] = (
                revenue_by_vendor.get(product.vendor_id, ZERO) + item.line_total
            )

        vendors = await self._lock_vendors(list(revenue_by_vendor))
        splits: list[VendorCommissionSplit] = []
        for vendor_id, revenue in revenue_by_vendor.items():
            vendor = vendors.get(vendor_id)
            if vendor is None:
                logger.warning("Vendor %s not found for order %s, skipping", vendor_id, order.order_number)
                continue

            commission = vendor.calculate_commission(revenue)
            payout = revenue - commission
            vendor.update_sales_stats(revenue, commission)
            self.db.add(CommissionEntry(
                order_id=order.id,
                vendor_id=vendor_id,
                kind=CommissionEntryKind.ACCRUAL,
                revenue=revenue,
                commission_rate=vendor.commission_rate,
                commission=commission,
                payout=payout,
            ))
            splits.append(VendorCommissionSplit(
                vendor_id=vendor_id,
                revenue=revenue,
                commission_rate=vendor.commission_rate,
                commission=commission,
                payout=payout,
            ))

        total_commission = sum((split.commission for split in splits), ZERO)
        order.vendor_commission = total_commission
        order.platform_commission = total_commission
        order.vendor_id = splits[0].vendor_id if splits else None
        order.commission_status = CommissionStatus.COMPUTED
        order.commission_calculated_at = utcnow()
        await self.db.flush()

        logger.info(
            "Commissions calculated for order %s: %s across %d vendors",
            order.order_number, total_commission, len(splits),
        )
        return CommissionSummary(
            order_id=order.id,
            vendor_commission=total_commission,
            platform_commission=total_commission,
            vendor_id=order.vendor_id,
            vendors_updated=len(splits),
            splits=splits,
        )

    async def reverse_order_commissions(self, order: Order) -> CommissionSummary:
        """Post compensating reversals for everything still accrued on the order."""
        if order.commission_status != CommissionStatus.COMPUTED:
            return CommissionSummary(order_id=order.id)

        result = await self.db.execute(
            select(
                CommissionEntry.vendor_id,
                func.sum(CommissionEntry.revenue),
                func.sum(CommissionEntry.commission),
                func.max(CommissionEntry.commission_rate),
            )
            .where(CommissionEntry.order_id == order.id)
            .group_by(CommissionEntry.vendor_id)
        )
        outstanding = [
            (vendor_id, Decimal(str(revenue)), Decimal(str(commission)), Decimal(str(rate)))
            for vendor_id, revenue, commission, rate in result.all()
            if Decimal(str(revenue)) != ZERO or Decimal(str(commission)) != ZERO
        ]

        vendors = await self._lock_vendors([vendor_id for vendor_id, *_ in outstanding])
        splits: list[VendorCommissionSplit] = []
        for vendor_id, revenue, commission, rate in outstanding:
            vendor = vendors.get(vendor_id)
            if vendor is not None:
                vendor.reverse_sales_stats(revenue, commission)
            else:
                logger.warning("Vendor %s vanished, reversing ledger only", vendor_id)
            self.db.add(CommissionEntry(
                order_id=order.id,
                vendor_id=vendor_id,
                kind=CommissionEntryKind.REVERSAL,
                revenue=-revenue,
                commission_rate=rate,
                commission=-commission,
                payout=-(revenue - commission),
            ))
            splits.append(VendorCommissionSplit(
                vendor_id=vendor_id,
                revenue=-revenue,
                commission_rate=rate,
                commission=-commission,
                payout=-(revenue - commission),
            ))

        reversed_total = order.vendor_commission
        order.vendor_commission = ZERO
        order.platform_commission = ZERO
        order.commission_status = CommissionStatus.REVERSED
        await self.db.flush()

        logger.info("Commissions reversed for order %s (%s)", order.order_number, reversed_total)
        return CommissionSummary(
            order_id=order.id,
            vendor_commission=-reversed_total,
            platform_commission=-reversed_total,
            vendor_id=order.vendor_id,
            vendors_updated=len(splits),
            splits=splits,
        )

    async def recalculate_order_commissions(self, order_id: uuid.UUID) -> CommissionSummary:
        order = await self.get_order(order_id, for_update=True)
        if order.status == OrderStatus.CANCELLED:
            raise InvalidStateError("Cancelled orders have no commissions to recalculate")
        await self.reverse_order_commissions(order)
        return await self.calculate_order_commissions(order)

    async def get_vendor_ledger(self, vendor_id: uuid.UUID) -> VendorLedgerTotals:
        if await self.db.get(Vendor, vendor_id) is None:
            raise NotFoundError("Vendor not found")

        row = (await self.db.execute(
            select(
                func.coalesce(func.sum(CommissionEntry.revenue), ZERO),
                func.coalesce(func.sum(CommissionEntry.commission), ZERO),
                func.coalesce(func.sum(CommissionEntry.payout), ZERO),
                func.coalesce(
                    func.sum(case((CommissionEntry.kind == CommissionEntryKind.ACCRUAL, 1), else_=-1)), 0
                ),
            ).where(CommissionEntry.vendor_id == vendor_id)
        )).one()
        revenue, commission, payout, orders = row
        return VendorLedgerTotals(
            vendor_id=vendor_id,
            orders=int(orders),
            revenue=Decimal(str(revenue)),
            commission=Decimal(str(commission)),
            payout=Decimal(str(payout)),
        )
