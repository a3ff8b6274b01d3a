"""Payment & Refund models."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Numeric, Enum, ForeignKey, Text, Index, DateTime, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.db.base import Base
from marketplace.models.mixins import UUIDPrimaryKeyMixin, TimestampMixin


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class PaymentGateway(str, enum.Enum):
    CARD = "card"
    PAYPAL = "paypal"
    COD = "cod"
    MTN_MOMO = "mtn_momo"
    AIRTEL_MONEY = "airtel_money"
    BANK_TRANSFER = "bank_transfer"
    PESAPAL = "pesapal"
    MANUAL_MOMO = "manual_momo"


class RefundStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Payment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_order", "order_id"),
        Index("ix_payments_status_created", "status", "created_at"),
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    gateway: Mapped[PaymentGateway] = mapped_column(Enum(PaymentGateway), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True
    )

    # Gateway transaction details
    transaction_id: Mapped[str | None] = mapped_column(String(255), unique=True, index=True)
    gateway_response: Mapped[dict | None] = mapped_column(JSON)

    # Additional info
    note: Mapped[str | None] = mapped_column(Text)
    reference: Mapped[str | None] = mapped_column(String(255))

    # Foreign keys
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    processed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)

    # Relationships
    order = relationship("Order", lazy="raise")

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.gateway}={self.amount} status={self.status}>"


class Refund(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Refund request recorded on cancellation of a paid order.

    Only the record is kept here; handing it to a gateway happens elsewhere.
    """

    __tablename__ = "refunds"

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[RefundStatus] = mapped_column(
        Enum(RefundStatus), default=RefundStatus.PENDING, nullable=False
    )
    refund_reference: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255))
    processed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<Refund {self.refund_reference} {self.amount} {self.currency} status={self.status}>"
