"""Stock reservation (temporary hold) model."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import String, Integer, Enum, ForeignKey, Index, DateTime, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.db.base import Base
from marketplace.models.mixins import UUIDPrimaryKeyMixin, TimestampMixin


class ReservationStatus(str, enum.Enum):
    ACTIVE = "active"
    CONFIRMED = "confirmed"
    RELEASED = "released"
    EXPIRED = "expired"


class StockReservation(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "stock_reservations"
    __table_args__ = (
        Index("ix_stock_reservations_status_expires", "status", "expires_at"),
        Index("ix_stock_reservations_order_status", "order_id", "status"),
        CheckConstraint("quantity >= 1", name="ck_stock_reservation_quantity"),
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus), default=ReservationStatus.ACTIVE, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reason: Mapped[str | None] = mapped_column(String(500))

    inventory_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    variant_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    order_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<StockReservation {self.id} qty={self.quantity} status={self.status}>"
