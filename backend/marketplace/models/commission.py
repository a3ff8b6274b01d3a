"""Commission ledger: one signed row per vendor per accrual or reversal."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Numeric, Enum, ForeignKey, Index, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.db.base import Base
from marketplace.models.mixins import UUIDPrimaryKeyMixin, utcnow


class CommissionEntryKind(str, enum.Enum):
    ACCRUAL = "accrual"
    REVERSAL = "reversal"


class CommissionEntry(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "commission_entries"
    __table_args__ = (
        Index("ix_commission_entries_order_kind", "order_id", "kind"),
        Index("ix_commission_entries_vendor_created", "vendor_id", "created_at"),
    )

    kind: Mapped[CommissionEntryKind] = mapped_column(Enum(CommissionEntryKind), nullable=False)
    revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payout: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("vendors.id", ondelete="RESTRICT"), nullable=False
    )

    def __repr__(self) -> str:
        return f"<CommissionEntry {self.kind} vendor={self.vendor_id} commission={self.commission}>"
