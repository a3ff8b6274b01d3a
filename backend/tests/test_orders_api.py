"""Unit tests for order cancellation and commission endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch
import uuid

import pytest
from fastapi import HTTPException

from marketplace.core.exceptions import InvalidStateError, PermissionDeniedError
from marketplace.schemas.order import CancelRequest, CompensationResult


def _user(is_admin=False, vendor_id=None):
    user = MagicMock()
    user.id = uuid.uuid4()
    user.is_admin = is_admin
    user.vendor_id = vendor_id
    return user


# ── Cancellation ───────────────────────────────────

@pytest.mark.asyncio
async def test_cancel_delivered_order_returns_400():
    from marketplace.api.orders import cancel_order

    mock_db = AsyncMock()
    error = InvalidStateError("Delivered orders cannot be cancelled. Please initiate a return instead.")

    with patch("marketplace.api.orders.OrderCancellationService") as service_cls:
        service_cls.return_value.cancel_order = AsyncMock(side_effect=error)
        with pytest.raises(HTTPException) as exc_info:
            await cancel_order(
                order_id=uuid.uuid4(),
                body=CancelRequest(reason="Too late"),
                current_user=_user(is_admin=True),
                db=mock_db,
            )

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail.startswith("Delivered orders cannot be cancelled")
    mock_db.commit.assert_not_called()


@pytest.mark.asyncio
async def test_cancel_someone_elses_order_returns_403():
    from marketplace.api.orders import cancel_order

    with patch("marketplace.api.orders.OrderCancellationService") as service_cls:
        service_cls.return_value.cancel_order = AsyncMock(
            side_effect=PermissionDeniedError("Unauthorized to cancel this order")
        )
        with pytest.raises(HTTPException) as exc_info:
            await cancel_order(
                order_id=uuid.uuid4(),
                body=CancelRequest(reason="Not mine"),
                current_user=_user(),
                db=AsyncMock(),
            )

    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_cancel_commits_even_with_failed_compensation():
    """Failed follow-up steps are reported, and the cancellation is still committed."""
    from marketplace.api.orders import cancel_order

    user = _user()
    mock_db = AsyncMock()
    order_id = uuid.uuid4()
    result = MagicMock()
    result.failed_compensations = [
        CompensationResult(step="restock", target_id=uuid.uuid4(), success=False, error="Product not found in inventory")
    ]

    with patch("marketplace.api.orders.OrderCancellationService") as service_cls:
        service_cls.return_value.cancel_order = AsyncMock(return_value=result)
        returned = await cancel_order(
            order_id=order_id, body=CancelRequest(reason="Changed mind"), current_user=user, db=mock_db
        )

    assert returned is result
    service_cls.return_value.cancel_order.assert_awaited_once_with(order_id, user.id, "Changed mind", is_admin=False)
    mock_db.commit.assert_awaited_once()


def test_cancel_request_requires_reason():
    with pytest.raises(ValueError):
        CancelRequest(reason="")


# ── Order visibility ───────────────────────────────

@pytest.mark.asyncio
async def test_get_order_hidden_from_other_customers():
    from marketplace.api.orders import get_order

    order = MagicMock()
    order.user_id = uuid.uuid4()
    order.vendor_id = None
    mock_db = AsyncMock()
    mock_db.get.return_value = order

    with pytest.raises(HTTPException) as exc_info:
        await get_order(order_id=uuid.uuid4(), current_user=_user(), db=mock_db)

    assert exc_info.value.status_code == 404


def test_vendor_can_view_own_orders():
    from marketplace.api.orders import _can_view

    vendor_id = uuid.uuid4()
    order = MagicMock()
    order.user_id = uuid.uuid4()
    order.vendor_id = vendor_id

    assert _can_view(order, _user(vendor_id=vendor_id)) is True
    assert _can_view(order, _user(vendor_id=uuid.uuid4())) is False
    assert _can_view(order, _user(is_admin=True)) is True


# ── Commissions ────────────────────────────────────

@pytest.mark.asyncio
async def test_recalculate_cancelled_order_returns_400():
    from marketplace.api.orders import recalculate_commissions

    mock_db = AsyncMock()
    with patch("marketplace.api.orders.CommissionService") as service_cls:
        service_cls.return_value.recalculate_order_commissions = AsyncMock(
            side_effect=InvalidStateError("Cancelled orders have no commissions to recalculate")
        )
        with pytest.raises(HTTPException) as exc_info:
            await recalculate_commissions(order_id=uuid.uuid4(), current_user=_user(is_admin=True), db=mock_db)

    assert exc_info.value.status_code == 400
    mock_db.commit.assert_not_called()
