"""Inventory ledger model and its append-only transaction log."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    String, Integer, Boolean, DateTime, Enum, ForeignKey, Index, CheckConstraint, Uuid, event,
)
from sqlalchemy.orm import Mapped, WriteOnlyMapped, mapped_column, relationship

from marketplace.core.exceptions import InsufficientStockError, MarketplaceError
from marketplace.db.base import Base
from marketplace.models.mixins import UUIDPrimaryKeyMixin, TimestampMixin, utcnow


class StockTransactionType(str, enum.Enum):
    RESTOCK = "restock"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"
    RESERVED = "reserved"


_DEFAULTS = {
    "current_stock": 0,
    "reserved_stock": 0,
    "available_stock": 0,
    "low_stock_threshold": 10,
    "reorder_point": 5,
    "max_stock_level": 1000,
    "is_low_stock": False,
    "is_out_of_stock": False,
}


class Inventory(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "inventories"
    __table_args__ = (
        Index("ix_inventories_product_variant", "product_id", "variant_id"),
        CheckConstraint("current_stock >= 0", name="ck_inventory_current_stock"),
        CheckConstraint("reserved_stock >= 0", name="ck_inventory_reserved_stock"),
    )

    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    current_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reserved_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    available_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    reorder_point: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    max_stock_level: Mapped[int] = mapped_column(Integer, default=1000, nullable=False)
    is_low_stock: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    is_out_of_stock: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    last_restocked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    last_restocked_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)

    # Location
    warehouse: Mapped[str | None] = mapped_column(String(100))
    aisle: Mapped[str | None] = mapped_column(String(50))
    shelf: Mapped[str | None] = mapped_column(String(50))
    bin: Mapped[str | None] = mapped_column(String(50))

    # Supplier
    supplier_name: Mapped[str | None] = mapped_column(String(255), index=True)
    supplier_contact_email: Mapped[str | None] = mapped_column(String(255))
    supplier_contact_phone: Mapped[str | None] = mapped_column(String(50))
    supplier_lead_time_days: Mapped[int | None] = mapped_column(Integer)

    # Foreign keys
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    variant_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)

    # Relationships
    product = relationship("Product", lazy="raise")
    transactions: WriteOnlyMapped["StockTransaction"] = relationship(
        back_populates="inventory",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __init__(self, **kwargs):
        for key, value in _DEFAULTS.items():
            kwargs.setdefault(key, value)
        super().__init__(**kwargs)
        self.refresh_stock_flags()

    # ── Derived state ──────────────────────────────

    def refresh_stock_flags(self) -> None:
        """Recompute available stock and the low/out-of-stock flags."""
        self.available_stock = self.current_stock - self.reserved_stock
        self.is_out_of_stock = self.available_stock <= 0
        self.is_low_stock = not self.is_out_of_stock and self.available_stock <= self.low_stock_threshold

    @property
    def at_reorder_point(self) -> bool:
        return self.current_stock - self.reserved_stock <= self.reorder_point

    # ── Ledger operations ──────────────────────────

    def _record(
        self,
        type_: StockTransactionType,
        quantity: int,
        previous_stock: int,
        performed_by: uuid.UUID | None,
        reason: str | None,
        order_id: uuid.UUID | None = None,
    ) -> "StockTransaction":
        self.refresh_stock_flags()
        txn = StockTransaction(
            type=type_,
            quantity=quantity,
            previous_stock=previous_stock,
            new_stock=self.current_stock,
            reason=reason,
            order_id=order_id,
            performed_by=performed_by,
        )
        self.transactions.add(txn)
        return txn

    def add_stock(self, quantity: int, performed_by: uuid.UUID | None, reason: str = "Restock") -> int:
        """Increase physical stock. Returns the previous stock level."""
        previous_stock = self.current_stock
        self.current_stock += quantity
        self.last_restocked_at = utcnow()
        self.last_restocked_by = performed_by
        self._record(StockTransactionType.RESTOCK, quantity, previous_stock, performed_by, reason)
        return previous_stock

    def remove_stock(
        self,
        quantity: int,
        performed_by: uuid.UUID | None,
        order_id: uuid.UUID | None = None,
        reason: str = "Sale",
    ) -> int:
        """Deduct sold stock; only unreserved stock can be sold."""
        self.refresh_stock_flags()
        if self.available_stock < quantity:
            raise InsufficientStockError(
                "Insufficient stock available", available=self.available_stock, requested=quantity
            )
        previous_stock = self.current_stock
        self.current_stock -= quantity
        self._record(StockTransactionType.SALE, -quantity, previous_stock, performed_by, reason, order_id)
        return previous_stock

    def reserve(self, quantity: int, performed_by: uuid.UUID | None, order_id: uuid.UUID | None = None) -> None:
        self.refresh_stock_flags()
        if self.available_stock < quantity:
            raise InsufficientStockError(
                f"Insufficient stock. Available: {self.available_stock}, Requested: {quantity}",
                available=self.available_stock,
                requested=quantity,
            )
        self.reserved_stock += quantity
        self._record(
            StockTransactionType.RESERVED, quantity, self.current_stock, performed_by, "Reserved for order", order_id
        )

    def release_reserved(
        self,
        quantity: int,
        performed_by: uuid.UUID | None,
        order_id: uuid.UUID | None = None,
        reason: str = "Order cancelled",
    ) -> None:
        self.reserved_stock = max(0, self.reserved_stock - quantity)
        self._record(
            StockTransactionType.ADJUSTMENT,
            0,
            self.current_stock,
            performed_by,
            f"Released reservation: {reason}",
            order_id,
        )

    def confirm_reserved(
        self,
        quantity: int,
        performed_by: uuid.UUID | None,
        order_id: uuid.UUID | None = None,
        reason: str = "Order confirmed",
    ) -> int:
        """Turn a hold of ``quantity`` into a sale.

        The hold is lifted and the sale re-validated against what remains
        available without it; nothing is mutated when that check fails.
        Returns the previous stock level.
        """
        hold = min(quantity, self.reserved_stock)
        available_without_hold = self.current_stock - (self.reserved_stock - hold)
        if available_without_hold < quantity:
            raise InsufficientStockError(
                "Insufficient stock available", available=available_without_hold, requested=quantity
            )
        self.reserved_stock -= hold
        return self.remove_stock(quantity, performed_by, order_id, reason)

    def adjust_stock(self, new_quantity: int, performed_by: uuid.UUID | None, reason: str) -> int:
        """Manual correction to an absolute level. Returns the signed difference."""
        if new_quantity < 0:
            raise MarketplaceError("Quantity cannot be negative")
        previous_stock = self.current_stock
        difference = new_quantity - previous_stock
        self.current_stock = new_quantity
        self._record(StockTransactionType.ADJUSTMENT, difference, previous_stock, performed_by, reason)
        return difference

    def __repr__(self) -> str:
        return (
            f"<Inventory sku={self.sku} current={self.current_stock} "
            f"reserved={self.reserved_stock} available={self.available_stock}>"
        )


@event.listens_for(Inventory, "before_insert")
@event.listens_for(Inventory, "before_update")
def _refresh_before_persist(mapper, connection, target: Inventory) -> None:
    target.refresh_stock_flags()


class StockTransaction(UUIDPrimaryKeyMixin, Base):
    """One entry of an inventory's transaction log. Never updated or deleted."""

    __tablename__ = "inventory_transactions"
    __table_args__ = (
        Index("ix_inventory_transactions_inventory_created", "inventory_id", "created_at"),
    )

    type: Mapped[StockTransactionType] = mapped_column(Enum(StockTransactionType), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    new_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500))
    order_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)
    performed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    inventory_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False
    )
    inventory = relationship("Inventory", back_populates="transactions")

    def __repr__(self) -> str:
        return f"<StockTransaction {self.type} qty={self.quantity} {self.previous_stock}->{self.new_stock}>"
