"""Immutable stock movement audit trail."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import String, Integer, Enum, Index, DateTime, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.db.base import Base
from marketplace.models.mixins import UUIDPrimaryKeyMixin, utcnow


class StockHistoryType(str, enum.Enum):
    RESTOCK = "restock"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"
    RESERVATION = "reservation"
    RESERVATION_RELEASE = "reservation_release"


class StockHistory(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "stock_histories"
    __table_args__ = (
        Index("ix_stock_histories_product_created", "product_id", "created_at"),
        Index("ix_stock_histories_inventory_created", "inventory_id", "created_at"),
        Index("ix_stock_histories_type_created", "type", "created_at"),
    )

    type: Mapped[StockHistoryType] = mapped_column(Enum(StockHistoryType), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    new_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500))
    # "metadata" is reserved on declarative classes
    details: Mapped[dict | None] = mapped_column("metadata", JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    inventory_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    variant_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    order_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)

    def __repr__(self) -> str:
        return f"<StockHistory {self.type} qty={self.quantity} {self.previous_stock}->{self.new_stock}>"
