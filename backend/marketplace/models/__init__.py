"""SQLAlchemy models for the marketplace stock core."""

from marketplace.models.vendor import Vendor
from marketplace.models.product import Product
from marketplace.models.inventory import Inventory, StockTransaction, StockTransactionType
from marketplace.models.stock_reservation import StockReservation, ReservationStatus
from marketplace.models.stock_history import StockHistory, StockHistoryType
from marketplace.models.stock_alert import StockAlert, AlertType, AlertStatus
from marketplace.models.order import Order, OrderItem, OrderStatus, PaymentMethod, CommissionStatus
from marketplace.models.payment import Payment, PaymentStatus, PaymentGateway, Refund, RefundStatus
from marketplace.models.commission import CommissionEntry, CommissionEntryKind

__all__ = [
    "Vendor",
    "Product",
    "Inventory",
    "StockTransaction",
    "StockTransactionType",
    "StockReservation",
    "ReservationStatus",
    "StockHistory",
    "StockHistoryType",
    "StockAlert",
    "AlertType",
    "AlertStatus",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "CommissionStatus",
    "Payment",
    "PaymentStatus",
    "PaymentGateway",
    "Refund",
    "RefundStatus",
    "CommissionEntry",
    "CommissionEntryKind",
]
