"""Inventory service: availability, reservations, restock/adjust and the stock audit trail.

Every method works inside the caller's session and only flushes; the route
(or the sweeper) owns the commit. Inventory rows are read ``FOR UPDATE`` on
every path that mutates them, so a reservation row and the stock it holds
are written in the same transaction.
"""

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import select, func, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.exceptions import (
    ConflictError, InsufficientStockError, InvalidStateError, NotFoundError,
)
from marketplace.models.inventory import Inventory, StockTransaction
from marketplace.models.mixins import utcnow
from marketplace.models.product import Product
from marketplace.models.stock_alert import StockAlert, AlertStatus, AlertType
from marketplace.models.stock_history import StockHistory, StockHistoryType
from marketplace.models.stock_reservation import StockReservation, ReservationStatus
from marketplace.schemas.inventory import (
    AvailabilityResult,
    InventoryCreate,
    InventoryUpdate,
    OperationResult,
    ReservationResult,
    StockMutationResult,
    SweepFailure,
    SweepResult,
)

logger = logging.getLogger(__name__)

_SETTINGS_FIELDS = (
    "low_stock_threshold", "reorder_point", "max_stock_level",
    "warehouse", "aisle", "shelf", "bin",
    "supplier_name", "supplier_contact_email", "supplier_contact_phone", "supplier_lead_time_days",
)
_REQUIRED_SETTINGS = {"low_stock_threshold", "reorder_point", "max_stock_level"}


class InventoryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Lookups ────────────────────────────────────

    async def find_inventory(
        self,
        product_id: uuid.UUID,
        variant_id: uuid.UUID | None = None,
        for_update: bool = False,
    ) -> Inventory | None:
        """Inventory for a product; the variant narrows the match only when given."""
        stmt = select(Inventory).where(Inventory.product_id == product_id)
        if variant_id is not None:
            stmt = stmt.where(Inventory.variant_id == variant_id)
        stmt = stmt.order_by(Inventory.created_at).limit(1)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_inventory(self, inventory_id: uuid.UUID, for_update: bool = False) -> Inventory:
        stmt = select(Inventory).where(Inventory.id == inventory_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        inventory = result.scalar_one_or_none()
        if inventory is None:
            raise NotFoundError("Inventory not found")
        return inventory

    async def _get_reservation(self, reservation_id: uuid.UUID) -> StockReservation:
        result = await self.db.execute(
            select(StockReservation)
            .where(StockReservation.id == reservation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFoundError("Reservation not found")
        return reservation

    async def list_inventory(
        self,
        page: int = 1,
        size: int = 50,
        low_stock: bool | None = None,
        out_of_stock: bool | None = None,
        product_id: uuid.UUID | None = None,
    ) -> tuple[list[Inventory], int]:
        query = select(Inventory)
        if low_stock is not None:
            query = query.where(Inventory.is_low_stock == low_stock)
        if out_of_stock is not None:
            query = query.where(Inventory.is_out_of_stock == out_of_stock)
        if product_id is not None:
            query = query.where(Inventory.product_id == product_id)

        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
        query = query.order_by(Inventory.updated_at.desc()).offset((page - 1) * size).limit(size)
        items = (await self.db.execute(query)).scalars().all()
        return list(items), total

    async def get_low_stock_products(self, limit: int = 50) -> list[Inventory]:
        result = await self.db.execute(
            select(Inventory)
            .where(Inventory.is_low_stock.is_(True))
            .order_by(Inventory.available_stock.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_out_of_stock_products(self, limit: int = 50) -> list[Inventory]:
        result = await self.db.execute(
            select(Inventory)
            .where(Inventory.is_out_of_stock.is_(True))
            .order_by(Inventory.updated_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_transactions(
        self, inventory: Inventory, page: int = 1, size: int = 50
    ) -> tuple[list[StockTransaction], int]:
        """Page through the inventory's own transaction log, newest first."""
        stmt = inventory.transactions.select()
        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
        stmt = stmt.order_by(StockTransaction.created_at.desc()).offset((page - 1) * size).limit(size)
        items = (await self.db.scalars(stmt)).all()
        return list(items), total

    async def get_stock_history(
        self, product_id: uuid.UUID, variant_id: uuid.UUID | None = None, limit: int = 50
    ) -> list[StockHistory]:
        stmt = select(StockHistory).where(StockHistory.product_id == product_id)
        if variant_id is not None:
            stmt = stmt.where(StockHistory.variant_id == variant_id)
        stmt = stmt.order_by(StockHistory.created_at.desc()).limit(limit)
        return list((await self.db.execute(stmt)).scalars().all())

    async def list_reservations_for_order(
        self,
        order_id: uuid.UUID,
        status: ReservationStatus | None = ReservationStatus.ACTIVE,
        for_update: bool = False,
    ) -> list[StockReservation]:
        stmt = select(StockReservation).where(StockReservation.order_id == order_id)
        if status is not None:
            stmt = stmt.where(StockReservation.status == status)
        stmt = stmt.order_by(StockReservation.created_at)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return list((await self.db.execute(stmt)).scalars().all())

    # ── Availability & reservations ────────────────

    async def check_availability(
        self, product_id: uuid.UUID, variant_id: uuid.UUID | None = None, quantity: int = 1
    ) -> AvailabilityResult:
        inventory = await self.find_inventory(product_id, variant_id)
        if inventory is None:
            return AvailabilityResult(available=False, stock=0, reason="Product not found in inventory")

        available = inventory.current_stock - inventory.reserved_stock
        if available < quantity:
            return AvailabilityResult(
                available=False, stock=available, reason="Insufficient stock", requested=quantity
            )
        return AvailabilityResult(
            available=True,
            stock=available,
            low_stock=inventory.is_low_stock,
            out_of_stock=inventory.is_out_of_stock,
        )

    async def reserve_stock(
        self,
        product_id: uuid.UUID,
        variant_id: uuid.UUID | None,
        quantity: int,
        user_id: uuid.UUID,
        order_id: uuid.UUID | None = None,
        expires_in_minutes: int | None = None,
    ) -> ReservationResult:
        """Hold ``quantity`` units for a pending order until ``expires_at``."""
        if expires_in_minutes is None:
            expires_in_minutes = settings.RESERVATION_EXPIRES_MINUTES

        inventory = await self.find_inventory(product_id, variant_id, for_update=True)
        if inventory is None:
            raise NotFoundError("Product not found in inventory")

        available = inventory.current_stock - inventory.reserved_stock
        if available < quantity:
            raise InsufficientStockError(
                f"Insufficient stock. Available: {available}, Requested: {quantity}",
                available=available,
                requested=quantity,
            )

        expires_at = utcnow() + timedelta(minutes=expires_in_minutes)
        reservation = StockReservation(
            id=uuid.uuid4(),
            inventory_id=inventory.id,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            user_id=user_id,
            order_id=order_id,
            expires_at=expires_at,
            status=ReservationStatus.ACTIVE,
        )
        self.db.add(reservation)

        inventory.reserve(quantity, user_id, order_id)
        self._record_history(
            inventory,
            StockHistoryType.RESERVATION,
            quantity,
            inventory.current_stock,
            user_id=user_id,
            order_id=order_id,
            reason="Stock reserved",
            details={"reservation_id": str(reservation.id), "expires_at": expires_at.isoformat()},
        )
        await self._sync_alerts(inventory)
        await self.db.flush()

        logger.info("Stock reserved: %d units of product %s for order %s", quantity, product_id, order_id)
        return ReservationResult(
            success=True,
            reservation_id=reservation.id,
            expires_at=expires_at,
            message=f"Reserved {quantity} units until {expires_at.isoformat()}",
        )

    async def release_reserved_stock(
        self, reservation_id: uuid.UUID, reason: str = "Order cancelled"
    ) -> OperationResult:
        reservation = await self._get_reservation(reservation_id)
        if reservation.status != ReservationStatus.ACTIVE:
            return OperationResult(success=False, message="Reservation already processed")

        inventory = await self.get_inventory(reservation.inventory_id, for_update=True)
        previous_reserved = inventory.reserved_stock
        inventory.release_reserved(reservation.quantity, reservation.user_id, reservation.order_id, reason)

        reservation.status = ReservationStatus.RELEASED
        reservation.released_at = utcnow()
        reservation.reason = reason

        self._record_history(
            inventory,
            StockHistoryType.RESERVATION_RELEASE,
            reservation.quantity,
            inventory.current_stock,
            user_id=reservation.user_id,
            order_id=reservation.order_id,
            reason=reason,
            details={
                "reservation_id": str(reservation.id),
                "reserved_before": previous_reserved,
                "reserved_after": inventory.reserved_stock,
            },
        )
        await self._sync_alerts(inventory)
        await self.db.flush()

        logger.info("Stock reservation released: %d units, reason: %s", reservation.quantity, reason)
        return OperationResult(success=True, message=f"Released {reservation.quantity} units")

    async def confirm_reservation(self, reservation_id: uuid.UUID, user_id: uuid.UUID | None) -> OperationResult:
        """Turn an active hold into a sale once the order is paid."""
        reservation = await self._get_reservation(reservation_id)
        if reservation.status == ReservationStatus.CONFIRMED:
            return OperationResult(success=False, message="Reservation already confirmed")
        if reservation.status in (ReservationStatus.RELEASED, ReservationStatus.EXPIRED):
            raise InvalidStateError("Reservation has been released")

        inventory = await self.get_inventory(reservation.inventory_id, for_update=True)
        previous_stock = inventory.confirm_reserved(
            reservation.quantity, user_id, reservation.order_id, "Order confirmed"
        )

        reservation.status = ReservationStatus.CONFIRMED
        reservation.confirmed_at = utcnow()

        self._record_history(
            inventory,
            StockHistoryType.SALE,
            -reservation.quantity,
            previous_stock,
            user_id=user_id,
            order_id=reservation.order_id,
            reason="Order confirmed and paid",
            details={"reservation_id": str(reservation.id)},
        )
        await self._sync_alerts(inventory)
        await self.db.flush()

        logger.info(
            "Stock reservation confirmed: %d units for order %s", reservation.quantity, reservation.order_id
        )
        return OperationResult(
            success=True,
            message=f"Confirmed {reservation.quantity} units",
            new_stock=inventory.current_stock,
        )

    async def release_expired_reservations(self, now: datetime | None = None) -> SweepResult:
        """Release every active hold past its expiry; one failure never stops the sweep."""
        now = now or utcnow()
        result = await self.db.execute(
            select(StockReservation.id)
            .where(
                StockReservation.status == ReservationStatus.ACTIVE,
                StockReservation.expires_at < now,
            )
            .order_by(StockReservation.expires_at)
        )
        expired_ids = list(result.scalars().all())

        released_count = 0
        failed: list[SweepFailure] = []
        for reservation_id in expired_ids:
            try:
                async with self.db.begin_nested():
                    outcome = await self.release_reserved_stock(reservation_id, "Reservation expired")
                if outcome.success:
                    released_count += 1
            except Exception as exc:
                logger.error("Error releasing expired reservation %s", reservation_id, exc_info=True)
                failed.append(SweepFailure(reservation_id=reservation_id, error=str(exc)))

        logger.info("Released %d expired reservations", released_count)
        return SweepResult(
            success=True,
            released_count=released_count,
            failed=failed,
            message=f"Released {released_count} expired reservations",
        )

    async def purge_stale_reservations(self, retention_days: int | None = None, now: datetime | None = None) -> int:
        """Delete settled reservations older than the retention window."""
        if retention_days is None:
            retention_days = settings.RESERVATION_RETENTION_DAYS
        cutoff = (now or utcnow()) - timedelta(days=retention_days)
        result = await self.db.execute(
            delete(StockReservation)
            .where(
                StockReservation.created_at < cutoff,
                StockReservation.status != ReservationStatus.ACTIVE,
            )
            .execution_options(synchronize_session=False)
        )
        purged = result.rowcount or 0
        if purged:
            logger.info("Purged %d reservations older than %d days", purged, retention_days)
        return purged

    # ── Stock mutations ────────────────────────────

    async def add_stock(
        self,
        inventory: Inventory,
        quantity: int,
        user_id: uuid.UUID | None,
        reason: str = "Restock",
        order_id: uuid.UUID | None = None,
    ) -> StockMutationResult:
        previous_stock = inventory.add_stock(quantity, user_id, reason)
        self._record_history(
            inventory,
            StockHistoryType.RESTOCK,
            quantity,
            previous_stock,
            user_id=user_id,
            order_id=order_id,
            reason=reason,
        )
        await self._sync_alerts(inventory)
        await self.db.flush()

        logger.info("Stock added: %d units to inventory %s (%s)", quantity, inventory.sku, reason)
        return StockMutationResult(
            success=True,
            previous_stock=previous_stock,
            new_stock=inventory.current_stock,
            message=f"Added {quantity} units to inventory",
        )

    async def restock_product(
        self,
        product_id: uuid.UUID,
        variant_id: uuid.UUID | None,
        quantity: int,
        user_id: uuid.UUID | None,
        reason: str = "Restock",
        order_id: uuid.UUID | None = None,
    ) -> StockMutationResult:
        inventory = await self.find_inventory(product_id, variant_id, for_update=True)
        if inventory is None:
            raise NotFoundError("Product not found in inventory")
        return await self.add_stock(inventory, quantity, user_id, reason, order_id)

    async def adjust_stock(
        self, inventory: Inventory, new_quantity: int, user_id: uuid.UUID | None, reason: str
    ) -> StockMutationResult:
        """Manual correction: sets current stock to an absolute value."""
        previous_stock = inventory.current_stock
        difference = inventory.adjust_stock(new_quantity, user_id, reason)
        self._record_history(
            inventory,
            StockHistoryType.ADJUSTMENT,
            difference,
            previous_stock,
            user_id=user_id,
            reason=reason,
        )
        await self._sync_alerts(inventory)
        await self.db.flush()

        logger.info("Stock adjusted: %d -> %d for inventory %s", previous_stock, new_quantity, inventory.sku)
        return StockMutationResult(
            success=True,
            previous_stock=previous_stock,
            new_stock=inventory.current_stock,
            difference=difference,
            message=f"Stock adjusted from {previous_stock} to {new_quantity}",
        )

    # ── Inventory records ──────────────────────────

    async def create_inventory(self, data: InventoryCreate, user_id: uuid.UUID | None) -> tuple[Inventory, bool]:
        """Create the record for a product/variant, or update the one that exists.

        Returns ``(inventory, created)``.
        """
        existing = await self._find_exact(data.product_id, data.variant_id)
        if existing is not None:
            if existing.sku != data.sku:
                await self._ensure_sku_free(data.sku)
                existing.sku = data.sku
            self._apply_settings(existing, data.model_dump(include=set(_SETTINGS_FIELDS), exclude_unset=True))
            if "current_stock" in data.model_fields_set and data.current_stock != existing.current_stock:
                await self.adjust_stock(existing, data.current_stock, user_id, "Inventory updated")
            else:
                await self._sync_alerts(existing)
                await self.db.flush()
            logger.info("Inventory updated for product %s", data.product_id)
            return existing, False

        product = await self.db.get(Product, data.product_id)
        if product is None:
            raise NotFoundError("Product not found")
        await self._ensure_sku_free(data.sku)

        inventory = Inventory(
            product_id=data.product_id,
            variant_id=data.variant_id,
            sku=data.sku,
            **data.model_dump(include=set(_SETTINGS_FIELDS), exclude_none=True),
        )
        self.db.add(inventory)
        await self.db.flush()

        if data.current_stock > 0:
            await self.add_stock(inventory, data.current_stock, user_id, "Initial stock")
        else:
            await self._sync_alerts(inventory)
            await self.db.flush()

        logger.info("Inventory created for product %s (sku=%s)", data.product_id, data.sku)
        return inventory, True

    async def update_settings(self, inventory: Inventory, data: InventoryUpdate) -> Inventory:
        self._apply_settings(inventory, data.model_dump(exclude_unset=True))
        await self._sync_alerts(inventory)
        await self.db.flush()
        return inventory

    async def delete_inventory(self, inventory: Inventory) -> None:
        if inventory.reserved_stock > 0:
            raise InvalidStateError("Inventory has active reservations")
        await self.db.delete(inventory)
        await self.db.flush()
        logger.info("Inventory %s deleted", inventory.sku)

    async def _find_exact(self, product_id: uuid.UUID, variant_id: uuid.UUID | None) -> Inventory | None:
        stmt = select(Inventory).where(Inventory.product_id == product_id)
        if variant_id is None:
            stmt = stmt.where(Inventory.variant_id.is_(None))
        else:
            stmt = stmt.where(Inventory.variant_id == variant_id)
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _ensure_sku_free(self, sku: str) -> None:
        taken = await self.db.execute(select(Inventory.id).where(Inventory.sku == sku))
        if taken.scalar_one_or_none() is not None:
            raise ConflictError(f"SKU {sku} already exists")

    @staticmethod
    def _apply_settings(inventory: Inventory, values: dict) -> None:
        for field, value in values.items():
            if field in _REQUIRED_SETTINGS and value is None:
                continue
            setattr(inventory, field, value)
        inventory.refresh_stock_flags()

    # ── Alerts ─────────────────────────────────────

    async def list_alerts(
        self, status: AlertStatus | None = AlertStatus.ACTIVE, limit: int = 100
    ) -> list[StockAlert]:
        stmt = select(StockAlert)
        if status is not None:
            stmt = stmt.where(StockAlert.status == status)
        stmt = stmt.order_by(StockAlert.created_at.desc()).limit(limit)
        return list((await self.db.execute(stmt)).scalars().all())

    async def acknowledge_alert(self, alert_id: uuid.UUID, user_id: uuid.UUID) -> StockAlert:
        alert = await self.db.get(StockAlert, alert_id)
        if alert is None:
            raise NotFoundError("Alert not found")
        if alert.status != AlertStatus.ACTIVE:
            raise InvalidStateError("Alert is not active")
        alert.status = AlertStatus.ACKNOWLEDGED
        alert.acknowledged_by = user_id
        alert.acknowledged_at = utcnow()
        await self.db.flush()
        return alert

    async def _sync_alerts(self, inventory: Inventory) -> None:
        """Raise alerts for thresholds the inventory is under and resolve the ones it left."""
        inventory.refresh_stock_flags()
        available = inventory.available_stock

        wanted: dict[AlertType, int] = {}
        if inventory.is_out_of_stock:
            wanted[AlertType.OUT_OF_STOCK] = 0
        elif inventory.is_low_stock:
            wanted[AlertType.LOW_STOCK] = inventory.low_stock_threshold
        if not inventory.is_out_of_stock and available <= inventory.reorder_point:
            wanted[AlertType.REORDER_POINT] = inventory.reorder_point

        resolvable = []
        if not inventory.is_out_of_stock:
            resolvable.append(AlertType.OUT_OF_STOCK)
        if available > inventory.low_stock_threshold:
            resolvable.append(AlertType.LOW_STOCK)
        if available > inventory.reorder_point:
            resolvable.append(AlertType.REORDER_POINT)

        if resolvable:
            await self.db.execute(
                update(StockAlert)
                .where(
                    StockAlert.inventory_id == inventory.id,
                    StockAlert.status == AlertStatus.ACTIVE,
                    StockAlert.type.in_(resolvable),
                )
                .values(status=AlertStatus.RESOLVED, resolved_at=utcnow())
                .execution_options(synchronize_session=False)
            )

        if not wanted:
            return
        result = await self.db.execute(
            select(StockAlert.type).where(
                StockAlert.inventory_id == inventory.id,
                StockAlert.status == AlertStatus.ACTIVE,
            )
        )
        open_types = set(result.scalars().all())
        for alert_type, threshold in wanted.items():
            if alert_type in open_types:
                continue
            self.db.add(StockAlert(
                inventory_id=inventory.id,
                product_id=inventory.product_id,
                variant_id=inventory.variant_id,
                type=alert_type,
                threshold=threshold,
                current_stock=inventory.current_stock,
                status=AlertStatus.ACTIVE,
            ))
            logger.warning(
                "Stock alert %s raised for %s (available=%d)", alert_type.value, inventory.sku, available
            )

    # ── Audit trail ────────────────────────────────

    def _record_history(
        self,
        inventory: Inventory,
        type_: StockHistoryType,
        quantity: int,
        previous_stock: int,
        user_id: uuid.UUID | None = None,
        order_id: uuid.UUID | None = None,
        reason: str | None = None,
        details: dict | None = None,
    ) -> StockHistory:
        entry = StockHistory(
            inventory_id=inventory.id,
            product_id=inventory.product_id,
            variant_id=inventory.variant_id,
            type=type_,
            quantity=quantity,
            previous_stock=previous_stock,
            new_stock=inventory.current_stock,
            user_id=user_id,
            order_id=order_id,
            reason=reason,
            details=details,
        )
        self.db.add(entry)
        return entry
