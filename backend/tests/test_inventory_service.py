"""Service tests for reservations, stock mutations and alerts against an in-memory database."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from marketplace.core.exceptions import (
    ConflictError, InsufficientStockError, InvalidStateError, NotFoundError,
)
from marketplace.models.inventory import StockTransactionType
from marketplace.models.mixins import utcnow
from marketplace.models.stock_alert import AlertStatus, AlertType, StockAlert
from marketplace.models.stock_history import StockHistoryType
from marketplace.models.stock_reservation import ReservationStatus, StockReservation
from marketplace.schemas.inventory import InventoryCreate
from marketplace.services.inventory import InventoryService


# ── Availability ───────────────────────────────────

@pytest.mark.asyncio
async def test_check_availability_missing_inventory(db):
    result = await InventoryService(db).check_availability(uuid.uuid4(), None, 1)

    assert result.available is False
    assert result.stock == 0
    assert result.reason == "Product not found in inventory"


@pytest.mark.asyncio
async def test_check_availability_counts_reserved_stock(db, seed):
    """Reserved units are not available to other buyers."""
    product = await seed.product()
    await seed.inventory(product, current_stock=10, reserved_stock=7)
    service = InventoryService(db)

    short = await service.check_availability(product.id, None, 5)
    assert short.available is False
    assert short.stock == 3
    assert short.requested == 5
    assert short.reason == "Insufficient stock"

    ok = await service.check_availability(product.id, None, 3)
    assert ok.available is True
    assert ok.low_stock is True


# ── Reserve / release / confirm ────────────────────

@pytest.mark.asyncio
async def test_reserve_and_release_round_trip(db, seed):
    """Reserving then releasing leaves stock exactly where it started."""
    product = await seed.product()
    inventory = await seed.inventory(product, current_stock=20)
    user_id = uuid.uuid4()
    service = InventoryService(db)

    reserved = await service.reserve_stock(product.id, None, 4, user_id)
    assert reserved.success is True
    assert reserved.message.startswith("Reserved 4 units until ")

    held = await service.get_inventory(inventory.id)
    assert held.reserved_stock == 4
    assert held.available_stock == 16

    released = await service.release_reserved_stock(reserved.reservation_id, "Customer changed mind")
    assert released.success is True
    assert released.message == "Released 4 units"

    after = await service.get_inventory(inventory.id, for_update=True)
    assert after.current_stock == 20
    assert after.reserved_stock == 0
    assert after.available_stock == 20

    reservation = await db.get(StockReservation, reserved.reservation_id)
    assert reservation.status == ReservationStatus.RELEASED
    assert reservation.reason == "Customer changed mind"
    assert reservation.released_at is not None


@pytest.mark.asyncio
async def test_reserve_insufficient_stock_message(db, seed):
    product = await seed.product()
    await seed.inventory(product, current_stock=5, reserved_stock=3)

    with pytest.raises(InsufficientStockError) as exc_info:
        await InventoryService(db).reserve_stock(product.id, None, 3, uuid.uuid4())

    assert exc_info.value.message == "Insufficient stock. Available: 2, Requested: 3"
    reservations = (await db.execute(select(StockReservation))).scalars().all()
    assert reservations == []


@pytest.mark.asyncio
async def test_reserve_without_inventory_raises_not_found(db):
    with pytest.raises(NotFoundError, match="Product not found in inventory"):
        await InventoryService(db).reserve_stock(uuid.uuid4(), None, 1, uuid.uuid4())


@pytest.mark.asyncio
async def test_reserve_then_confirm_turns_hold_into_sale(db, seed):
    """50 on hand, 45 reserved and confirmed: 5 left, low stock but not out."""
    product = await seed.product()
    inventory = await seed.inventory(product, current_stock=50, low_stock_threshold=10)
    user_id = uuid.uuid4()
    order_id = uuid.uuid4()
    service = InventoryService(db)

    reserved = await service.reserve_stock(product.id, None, 45, user_id, order_id=order_id)
    held = await service.get_inventory(inventory.id)
    assert held.available_stock == 5
    assert held.is_low_stock is True

    confirmed = await service.confirm_reservation(reserved.reservation_id, user_id)
    assert confirmed.success is True
    assert confirmed.message == "Confirmed 45 units"
    assert confirmed.new_stock == 5

    after = await service.get_inventory(inventory.id, for_update=True)
    assert after.current_stock == 5
    assert after.reserved_stock == 0
    assert after.is_out_of_stock is False
    assert after.is_low_stock is True

    history = await service.get_stock_history(product.id)
    sale = next(h for h in history if h.type == StockHistoryType.SALE)
    assert sale.quantity == -45
    assert sale.previous_stock == 50
    assert sale.new_stock == 5
    assert sale.order_id == order_id


@pytest.mark.asyncio
async def test_release_twice_is_a_no_op(db, seed):
    product = await seed.product()
    inventory = await seed.inventory(product, current_stock=10)
    service = InventoryService(db)
    reserved = await service.reserve_stock(product.id, None, 2, uuid.uuid4())

    first = await service.release_reserved_stock(reserved.reservation_id)
    second = await service.release_reserved_stock(reserved.reservation_id)

    assert first.success is True
    assert second.success is False
    assert second.message == "Reservation already processed"
    after = await service.get_inventory(inventory.id, for_update=True)
    assert after.reserved_stock == 0
    assert after.current_stock == 10


@pytest.mark.asyncio
async def test_confirm_twice_is_a_no_op(db, seed):
    product = await seed.product()
    await seed.inventory(product, current_stock=10)
    service = InventoryService(db)
    reserved = await service.reserve_stock(product.id, None, 2, uuid.uuid4())

    await service.confirm_reservation(reserved.reservation_id, None)
    again = await service.confirm_reservation(reserved.reservation_id, None)

    assert again.success is False
    assert again.message == "Reservation already confirmed"


@pytest.mark.asyncio
async def test_confirm_after_release_raises(db, seed):
    product = await seed.product()
    await seed.inventory(product, current_stock=10)
    service = InventoryService(db)
    reserved = await service.reserve_stock(product.id, None, 2, uuid.uuid4())
    await service.release_reserved_stock(reserved.reservation_id)

    with pytest.raises(InvalidStateError, match="Reservation has been released"):
        await service.confirm_reservation(reserved.reservation_id, None)


@pytest.mark.asyncio
async def test_release_unknown_reservation_raises(db):
    with pytest.raises(NotFoundError, match="Reservation not found"):
        await InventoryService(db).release_reserved_stock(uuid.uuid4())


# ── Expiry sweep ───────────────────────────────────

@pytest.mark.asyncio
async def test_release_expired_reservations(db, seed):
    """Expired holds are released once; a second sweep finds nothing."""
    product = await seed.product()
    inventory = await seed.inventory(product, current_stock=10)
    service = InventoryService(db)
    stale = await service.reserve_stock(product.id, None, 3, uuid.uuid4(), expires_in_minutes=5)
    fresh = await service.reserve_stock(product.id, None, 2, uuid.uuid4(), expires_in_minutes=60)
    await db.commit()

    later = utcnow() + timedelta(minutes=10)
    first = await service.release_expired_reservations(now=later)
    await db.commit()

    assert first.released_count == 1
    assert first.failed == []
    assert (await db.get(StockReservation, stale.reservation_id)).status == ReservationStatus.RELEASED
    assert (await db.get(StockReservation, fresh.reservation_id)).status == ReservationStatus.ACTIVE
    after = await service.get_inventory(inventory.id, for_update=True)
    assert after.reserved_stock == 2

    second = await service.release_expired_reservations(now=later)
    assert second.released_count == 0
    assert second.message == "Released 0 expired reservations"


@pytest.mark.asyncio
async def test_purge_removes_only_settled_reservations(db, seed):
    product = await seed.product()
    await seed.inventory(product, current_stock=10)
    service = InventoryService(db)
    settled = await service.reserve_stock(product.id, None, 1, uuid.uuid4())
    active = await service.reserve_stock(product.id, None, 1, uuid.uuid4(), expires_in_minutes=24 * 60)
    await service.release_reserved_stock(settled.reservation_id)
    await db.commit()

    assert await service.purge_stale_reservations(retention_days=30) == 0

    purged = await service.purge_stale_reservations(retention_days=30, now=utcnow() + timedelta(days=31))
    await db.commit()

    assert purged == 1
    remaining = (await db.execute(select(StockReservation.id))).scalars().all()
    assert remaining == [active.reservation_id]


# ── Restock / adjust ───────────────────────────────

@pytest.mark.asyncio
async def test_restock_product_logs_transaction(db, seed):
    product = await seed.product()
    inventory = await seed.inventory(product, current_stock=2)
    user_id = uuid.uuid4()
    service = InventoryService(db)

    result = await service.restock_product(product.id, None, 8, user_id, reason="Supplier delivery")

    assert result.previous_stock == 2
    assert result.new_stock == 10
    assert result.message == "Added 8 units to inventory"

    fresh = await service.get_inventory(inventory.id)
    transactions, total = await service.get_transactions(fresh)
    assert total == 1
    assert transactions[0].type == StockTransactionType.RESTOCK
    assert transactions[0].quantity == 8
    assert transactions[0].reason == "Supplier delivery"
    assert transactions[0].performed_by == user_id


@pytest.mark.asyncio
async def test_restock_missing_product_raises(db):
    with pytest.raises(NotFoundError, match="Product not found in inventory"):
        await InventoryService(db).restock_product(uuid.uuid4(), None, 1, None)


@pytest.mark.asyncio
async def test_adjust_stock_message(db, seed):
    product = await seed.product()
    inventory = await seed.inventory(product, current_stock=12)
    service = InventoryService(db)
    loaded = await service.get_inventory(inventory.id, for_update=True)

    result = await service.adjust_stock(loaded, 9, uuid.uuid4(), "Damaged in storage")

    assert result.difference == -3
    assert result.message == "Stock adjusted from 12 to 9"


# ── Inventory records ──────────────────────────────

@pytest.mark.asyncio
async def test_create_inventory_records_initial_stock(db, seed):
    product = await seed.product()
    service = InventoryService(db)

    inventory, created = await service.create_inventory(
        InventoryCreate(product_id=product.id, sku="NEW-SKU-1", current_stock=25, warehouse="A"),
        uuid.uuid4(),
    )

    assert created is True
    assert inventory.current_stock == 25
    assert inventory.warehouse == "A"
    history = await service.get_stock_history(product.id)
    assert [h.reason for h in history] == ["Initial stock"]


@pytest.mark.asyncio
async def test_create_inventory_updates_existing_record(db, seed):
    """A second create for the same product updates settings without touching stock."""
    product = await seed.product()
    existing = await seed.inventory(product, current_stock=7)
    service = InventoryService(db)

    inventory, created = await service.create_inventory(
        InventoryCreate(product_id=product.id, sku=existing.sku, low_stock_threshold=3),
        None,
    )

    assert created is False
    assert inventory.id == existing.id
    assert inventory.current_stock == 7
    assert inventory.low_stock_threshold == 3


@pytest.mark.asyncio
async def test_create_inventory_duplicate_sku_conflicts(db, seed):
    taken = await seed.inventory(await seed.product(), current_stock=1)
    other = await seed.product()

    with pytest.raises(ConflictError):
        await InventoryService(db).create_inventory(
            InventoryCreate(product_id=other.id, sku=taken.sku), None
        )


@pytest.mark.asyncio
async def test_create_inventory_unknown_product(db):
    with pytest.raises(NotFoundError, match="Product not found"):
        await InventoryService(db).create_inventory(
            InventoryCreate(product_id=uuid.uuid4(), sku="ORPHAN"), None
        )


@pytest.mark.asyncio
async def test_delete_inventory_with_reservations_refused(db, seed):
    product = await seed.product()
    inventory = await seed.inventory(product, current_stock=5, reserved_stock=1)
    service = InventoryService(db)

    with pytest.raises(InvalidStateError, match="Inventory has active reservations"):
        await service.delete_inventory(await service.get_inventory(inventory.id))


# ── Alerts ─────────────────────────────────────────

@pytest.mark.asyncio
async def test_alerts_raised_and_resolved(db, seed):
    """Dropping below thresholds raises alerts; restocking resolves them."""
    product = await seed.product()
    inventory = await seed.inventory(product, current_stock=20, low_stock_threshold=10, reorder_point=5)
    service = InventoryService(db)
    loaded = await service.get_inventory(inventory.id, for_update=True)

    await service.adjust_stock(loaded, 4, None, "Shrinkage")
    active = {a.type for a in await service.list_alerts()}
    assert active == {AlertType.LOW_STOCK, AlertType.REORDER_POINT}

    await service.adjust_stock(loaded, 0, None, "Shrinkage")
    active = {a.type for a in await service.list_alerts()}
    assert active == {AlertType.LOW_STOCK, AlertType.REORDER_POINT, AlertType.OUT_OF_STOCK}

    await service.add_stock(loaded, 50, None)
    assert await service.list_alerts() == []
    resolved = await service.list_alerts(status=AlertStatus.RESOLVED)
    assert {a.type for a in resolved} == {AlertType.LOW_STOCK, AlertType.REORDER_POINT, AlertType.OUT_OF_STOCK}


@pytest.mark.asyncio
async def test_acknowledge_alert(db, seed):
    product = await seed.product()
    inventory = await seed.inventory(product, current_stock=20)
    service = InventoryService(db)
    loaded = await service.get_inventory(inventory.id, for_update=True)
    await service.adjust_stock(loaded, 0, None, "Recount")
    alert = (await db.execute(
        select(StockAlert).where(StockAlert.type == AlertType.OUT_OF_STOCK)
    )).scalar_one()
    user_id = uuid.uuid4()

    acknowledged = await service.acknowledge_alert(alert.id, user_id)
    assert acknowledged.status == AlertStatus.ACKNOWLEDGED
    assert acknowledged.acknowledged_by == user_id

    with pytest.raises(InvalidStateError, match="Alert is not active"):
        await service.acknowledge_alert(alert.id, user_id)


# ── Listings ───────────────────────────────────────

@pytest.mark.asyncio
async def test_low_and_out_of_stock_listings(db, seed):
    low = await seed.inventory(await seed.product(), current_stock=3, low_stock_threshold=10)
    lower = await seed.inventory(await seed.product(), current_stock=1, low_stock_threshold=10)
    empty = await seed.inventory(await seed.product(), current_stock=4, reserved_stock=4)
    await seed.inventory(await seed.product(), current_stock=50)
    service = InventoryService(db)

    assert [inv.id for inv in await service.get_low_stock_products()] == [lower.id, low.id]
    assert [inv.id for inv in await service.get_out_of_stock_products()] == [empty.id]

    items, total = await service.list_inventory(out_of_stock=False)
    assert total == 3
    assert empty.id not in {inv.id for inv in items}
