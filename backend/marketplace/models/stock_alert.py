"""Low / out-of-stock alert model."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Integer, Boolean, Enum, ForeignKey, Index, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.db.base import Base
from marketplace.models.mixins import UUIDPrimaryKeyMixin, TimestampMixin


class AlertType(str, enum.Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    REORDER_POINT = "reorder_point"


class AlertStatus(str, enum.Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class StockAlert(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "stock_alerts"
    __table_args__ = (
        Index("ix_stock_alerts_status_created", "status", "created_at"),
        Index("ix_stock_alerts_inventory_type_status", "inventory_id", "type", "status"),
    )

    type: Mapped[AlertType] = mapped_column(Enum(AlertType), nullable=False)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[AlertStatus] = mapped_column(Enum(AlertStatus), default=AlertStatus.ACTIVE, nullable=False)
    acknowledged_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notification_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notification_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    inventory_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    variant_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)

    def __repr__(self) -> str:
        return f"<StockAlert {self.type} status={self.status} stock={self.current_stock}>"
