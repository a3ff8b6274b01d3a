"""Vendor model with rolling sales totals."""

import uuid
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import String, Numeric, Integer, Boolean, Uuid, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.db.base import Base
from marketplace.models.mixins import UUIDPrimaryKeyMixin, TimestampMixin

CENTS = Decimal("0.01")


class Vendor(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "vendors"
    __table_args__ = (
        CheckConstraint("commission_rate >= 0 AND commission_rate <= 100", name="ck_vendor_commission_rate"),
    )

    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("15.00"), nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Rolling sales statistics
    total_sales: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_orders: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"), nullable=False)
    total_commission: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"), nullable=False)
    pending_payout: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"), nullable=False)

    products = relationship("Product", back_populates="vendor", lazy="raise")

    def calculate_commission(self, amount: Decimal) -> Decimal:
        return (Decimal(amount) * Decimal(self.commission_rate) / 100).quantize(CENTS, rounding=ROUND_HALF_UP)

    def update_sales_stats(self, order_amount: Decimal, commission: Decimal) -> None:
        """Accrue one settled order into the running totals."""
        self.total_sales += 1
        self.total_revenue += order_amount
        self.total_commission += commission
        self.pending_payout += order_amount - commission
        self.total_orders += 1

    def reverse_sales_stats(self, order_amount: Decimal, commission: Decimal) -> None:
        """Undo a previous ``update_sales_stats`` call for the same amounts."""
        self.total_sales = max(0, self.total_sales - 1)
        self.total_revenue -= order_amount
        self.total_commission -= commission
        self.pending_payout -= order_amount - commission
        self.total_orders = max(0, self.total_orders - 1)

    def __repr__(self) -> str:
        return f"<Vendor {self.business_name} rate={self.commission_rate}%>"
