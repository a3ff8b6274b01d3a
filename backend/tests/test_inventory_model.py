"""Unit tests for the Inventory ledger model (no database)."""

import uuid

import pytest
from sqlalchemy import inspect

from marketplace.core.exceptions import InsufficientStockError, MarketplaceError
from marketplace.models.inventory import Inventory
from marketplace.models.payment import Payment
from marketplace.models.vendor import Vendor


def _inventory(**kwargs) -> Inventory:
    kwargs.setdefault("sku", "SKU-1")
    return Inventory(id=uuid.uuid4(), product_id=uuid.uuid4(), **kwargs)


# ── Derived flags ──────────────────────────────────

def test_new_inventory_defaults_to_out_of_stock():
    """An inventory with no stock is out of stock and not low stock."""
    inventory = _inventory()

    assert inventory.current_stock == 0
    assert inventory.available_stock == 0
    assert inventory.is_out_of_stock is True
    assert inventory.is_low_stock is False


def test_flags_follow_available_stock():
    """Flags are computed from current minus reserved, not current alone."""
    inventory = _inventory(current_stock=20, low_stock_threshold=10)
    assert inventory.is_low_stock is False

    inventory.reserved_stock = 10
    inventory.refresh_stock_flags()
    assert inventory.available_stock == 10
    assert inventory.is_low_stock is True  # exactly at threshold

    inventory.reserved_stock = 20
    inventory.refresh_stock_flags()
    assert inventory.is_out_of_stock is True
    assert inventory.is_low_stock is False


def test_at_reorder_point():
    inventory = _inventory(current_stock=6, reorder_point=5)
    assert inventory.at_reorder_point is False
    inventory.reserved_stock = 1
    assert inventory.at_reorder_point is True


# ── Reserve / confirm ──────────────────────────────

def test_reserve_then_confirm_deducts_stock():
    """Reserving 45 of 50 then confirming leaves 5 on hand and nothing held."""
    inventory = _inventory(current_stock=50, low_stock_threshold=10)

    inventory.reserve(45, performed_by=None)
    assert inventory.reserved_stock == 45
    assert inventory.available_stock == 5
    assert inventory.is_low_stock is True

    previous = inventory.confirm_reserved(45, performed_by=None)
    assert previous == 50
    assert inventory.current_stock == 5
    assert inventory.reserved_stock == 0
    assert inventory.is_out_of_stock is False
    assert inventory.is_low_stock is True


def test_reserve_more_than_available_raises():
    inventory = _inventory(current_stock=10, reserved_stock=8)

    with pytest.raises(InsufficientStockError) as exc_info:
        inventory.reserve(3, performed_by=None)

    assert exc_info.value.message == "Insufficient stock. Available: 2, Requested: 3"
    assert exc_info.value.available == 2
    assert exc_info.value.requested == 3
    assert inventory.reserved_stock == 8


def test_confirm_fails_without_mutating_when_stock_vanished():
    """A hold whose stock was adjusted away cannot be confirmed, and nothing changes."""
    inventory = _inventory(current_stock=10, reserved_stock=5)
    inventory.current_stock = 3

    with pytest.raises(InsufficientStockError):
        inventory.confirm_reserved(5, performed_by=None)

    assert inventory.current_stock == 3
    assert inventory.reserved_stock == 5


# ── Release / remove / adjust ──────────────────────

def test_release_reserved_is_floored_at_zero():
    inventory = _inventory(current_stock=10, reserved_stock=2)

    inventory.release_reserved(5, performed_by=None)

    assert inventory.reserved_stock == 0
    assert inventory.current_stock == 10
    assert inventory.available_stock == 10


def test_remove_stock_ignores_reserved_units():
    """Only unreserved stock can be sold directly."""
    inventory = _inventory(current_stock=10, reserved_stock=8)

    with pytest.raises(InsufficientStockError, match="Insufficient stock available"):
        inventory.remove_stock(3, performed_by=None)

    inventory.remove_stock(2, performed_by=None)
    assert inventory.current_stock == 8


def test_add_stock_records_restock_time():
    user_id = uuid.uuid4()
    inventory = _inventory(current_stock=1)

    previous = inventory.add_stock(9, user_id)

    assert previous == 1
    assert inventory.current_stock == 10
    assert inventory.last_restocked_by == user_id
    assert inventory.last_restocked_at is not None


def test_adjust_stock_returns_signed_difference():
    inventory = _inventory(current_stock=10)

    assert inventory.adjust_stock(4, None, "Cycle count") == -6
    assert inventory.current_stock == 4
    assert inventory.adjust_stock(7, None, "Found a box") == 3


def test_adjust_stock_rejects_negative():
    inventory = _inventory(current_stock=10)

    with pytest.raises(MarketplaceError, match="Quantity cannot be negative"):
        inventory.adjust_stock(-1, None, "typo")

    assert inventory.current_stock == 10


# ── Mapper configuration ───────────────────────────

@pytest.mark.parametrize("model, attribute", [
    (Inventory, "product"),
    (Vendor, "products"),
    (Payment, "order"),
])
def test_unloaded_relationships_raise_on_access(model, attribute):
    assert inspect(model).relationships[attribute].lazy == "raise"
