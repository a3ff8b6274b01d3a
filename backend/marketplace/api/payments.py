"""Payment endpoints: pending records plus manual confirmation that triggers settlement."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import get_current_user, require_permission
from marketplace.db.base import get_db
from marketplace.models.order import Order, OrderStatus
from marketplace.models.payment import Payment, PaymentStatus
from marketplace.schemas.auth import CurrentUser
from marketplace.schemas.payment import (
    PaymentConfirm,
    PaymentConfirmResponse,
    PaymentCreate,
    PaymentFail,
    PaymentResponse,
    SettlementResult,
)
from marketplace.services.commission import CommissionService
from marketplace.services.settlement import settle_paid_order

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


async def _finalize_payment(
    db: AsyncSession,
    payment: Payment,
    new_status: PaymentStatus,
    user_id: UUID,
    transaction_id: str | None = None,
    raw_data: dict | None = None,
) -> SettlementResult | None:
    """Persist the payment outcome and, when it completed, settle the order."""
    payment.status = new_status
    payment.processed_by = user_id
    if transaction_id:
        payment.transaction_id = transaction_id
    if raw_data is not None:
        payment.gateway_response = raw_data

    settlement = None
    if new_status == PaymentStatus.COMPLETED:
        order = await CommissionService(db).get_order(payment.order_id, for_update=True)
        settlement = await settle_paid_order(db, order, user_id)

    await db.commit()
    return settlement


async def _get_payment(db: AsyncSession, payment_id: UUID, user: CurrentUser) -> Payment:
    payment = await db.get(Payment, payment_id)
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    if not user.is_admin:
        order = await db.get(Order, payment.order_id)
        if not order or order.user_id != user.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return payment


# ---------------------------------------------------------------------------
# CRUD endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=list[PaymentResponse])
async def list_order_payments(
    order_id: UUID = Query(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Payments recorded against an order."""
    order = await db.get(Order, order_id)
    if not order or (not current_user.is_admin and order.user_id != current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    result = await db.execute(
        select(Payment).where(Payment.order_id == order_id).order_by(Payment.created_at.desc())
    )
    return list(result.scalars().all())


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get a single payment by ID."""
    return await _get_payment(db, payment_id, current_user)


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreate,
    current_user: CurrentUser = Depends(require_permission("payments:create")),
    db: AsyncSession = Depends(get_db),
):
    """Create a new payment record (initial PENDING state)."""
    order = await db.get(Order, payload.order_id)
    if not order or (not current_user.is_admin and order.user_id != current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    if order.status == OrderStatus.CANCELLED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Order is cancelled")

    payment = Payment(
        amount=payload.amount,
        gateway=payload.gateway,
        note=payload.note,
        reference=payload.reference,
        order_id=payload.order_id,
        processed_by=current_user.id,
        status=PaymentStatus.PENDING,
    )
    db.add(payment)
    await db.commit()
    await db.refresh(payment)
    return payment


# ---------------------------------------------------------------------------
# Manual confirmation (bank transfer, manual mobile money)
# ---------------------------------------------------------------------------


@router.post("/{payment_id}/confirm", response_model=PaymentConfirmResponse)
async def confirm_payment(
    payment_id: UUID,
    payload: PaymentConfirm,
    current_user: CurrentUser = Depends(require_permission("payments:confirm")),
    db: AsyncSession = Depends(get_db),
):
    """Mark a pending payment completed and settle its order."""
    payment = await _get_payment(db, payment_id, current_user)
    if payment.status != PaymentStatus.PENDING:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment already processed")

    if payload.note:
        payment.note = payload.note
    settlement = await _finalize_payment(
        db, payment, PaymentStatus.COMPLETED, current_user.id, payload.transaction_id, payload.gateway_response
    )

    logger.info(
        "Payment %s confirmed by %s: order=%s failures=%d",
        payment.id, current_user.id, payment.order_id, len(settlement.failures),
    )
    return PaymentConfirmResponse(payment=PaymentResponse.model_validate(payment), settlement=settlement)


@router.post("/{payment_id}/fail", response_model=PaymentResponse)
async def fail_payment(
    payment_id: UUID,
    payload: PaymentFail,
    current_user: CurrentUser = Depends(require_permission("payments:confirm")),
    db: AsyncSession = Depends(get_db),
):
    """Record a failed payment; the order and its reservations are left as they are."""
    payment = await _get_payment(db, payment_id, current_user)
    if payment.status != PaymentStatus.PENDING:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment already processed")

    payment.note = payload.reason
    await _finalize_payment(db, payment, PaymentStatus.FAILED, current_user.id, raw_data=payload.gateway_response)
    logger.info("Payment %s marked failed: %s", payment.id, payload.reason)
    return PaymentResponse.model_validate(payment)
