"""Initial database schema - vendors, products, orders, payments, refunds, inventory, reservations, stock audit, commission ledger

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum columns store member names, as the ORM models do
order_status = sa.Enum("PENDING", "PAID", "SHIPPED", "DELIVERED", "CANCELLED", name="orderstatus")
payment_method = sa.Enum(
    "CARD", "PAYPAL", "COD", "MTN_MOMO", "AIRTEL_MONEY", "BANK_TRANSFER", "PESAPAL", "MANUAL_MOMO",
    name="paymentmethod",
)
commission_status = sa.Enum("UNCOMPUTED", "COMPUTED", "REVERSED", name="commissionstatus")
payment_status = sa.Enum("PENDING", "COMPLETED", "FAILED", "REFUNDED", "CANCELLED", name="paymentstatus")
payment_gateway = sa.Enum(
    "CARD", "PAYPAL", "COD", "MTN_MOMO", "AIRTEL_MONEY", "BANK_TRANSFER", "PESAPAL", "MANUAL_MOMO",
    name="paymentgateway",
)
refund_status = sa.Enum("PENDING", "COMPLETED", "FAILED", name="refundstatus")
stock_transaction_type = sa.Enum("RESTOCK", "SALE", "RETURN", "ADJUSTMENT", "RESERVED", name="stocktransactiontype")
reservation_status = sa.Enum("ACTIVE", "CONFIRMED", "RELEASED", "EXPIRED", name="reservationstatus")
stock_history_type = sa.Enum(
    "RESTOCK", "SALE", "RETURN", "ADJUSTMENT", "RESERVATION", "RESERVATION_RELEASE", name="stockhistorytype"
)
alert_type = sa.Enum("LOW_STOCK", "OUT_OF_STOCK", "REORDER_POINT", name="alerttype")
alert_status = sa.Enum("ACTIVE", "ACKNOWLEDGED", "RESOLVED", name="alertstatus")
commission_entry_kind = sa.Enum("ACCRUAL", "REVERSAL", name="commissionentrykind")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # --- Vendors ---
    op.create_table(
        "vendors",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("user_id", sa.Uuid, nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False, server_default=sa.text("15.00")),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("total_sales", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("total_orders", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("total_revenue", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0.00")),
        sa.Column("total_commission", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0.00")),
        sa.Column("pending_payout", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0.00")),
        *_timestamps(),
        sa.CheckConstraint("commission_rate >= 0 AND commission_rate <= 100", name="ck_vendor_commission_rate"),
    )
    op.create_index("ix_vendors_user_id", "vendors", ["user_id"])

    # --- Products ---
    op.create_table(
        "products",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(100), nullable=False, unique=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("vendor_id", sa.Uuid, sa.ForeignKey("vendors.id", ondelete="SET NULL")),
        *_timestamps(),
    )
    op.create_index("ix_products_name", "products", ["name"])
    op.create_index("ix_products_vendor_id", "products", ["vendor_id"])

    # --- Orders ---
    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("order_number", sa.String(50), nullable=False, unique=True),
        sa.Column("status", order_status, nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'UGX'")),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column("payment_intent_id", sa.String(255)),
        sa.Column("notes", sa.Text),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", sa.Uuid),
        sa.Column("vendor_commission", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0.00")),
        sa.Column("platform_commission", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0.00")),
        sa.Column("commission_status", commission_status, nullable=False),
        sa.Column("commission_calculated_at", sa.DateTime(timezone=True)),
        sa.Column("user_id", sa.Uuid, nullable=False),
        sa.Column("vendor_id", sa.Uuid, sa.ForeignKey("vendors.id", ondelete="SET NULL")),
        *_timestamps(),
    )
    op.create_index("ix_orders_order_number", "orders", ["order_number"])
    op.create_index("ix_orders_payment_intent_id", "orders", ["payment_intent_id"])
    op.create_index("ix_orders_vendor_id", "orders", ["vendor_id"])
    op.create_index("ix_orders_user_created", "orders", ["user_id", "created_at"])
    op.create_index("ix_orders_status_created", "orders", ["status", "created_at"])
    op.create_index("ix_orders_cancelled_at", "orders", ["cancelled_at"])

    # --- Order Items ---
    op.create_table(
        "order_items",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("variant_id", sa.Uuid),
        sa.Column("variant_sku", sa.String(100)),
        sa.Column("order_id", sa.Uuid, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Uuid, sa.ForeignKey("products.id"), nullable=False),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    # --- Payments ---
    op.create_table(
        "payments",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("gateway", payment_gateway, nullable=False),
        sa.Column("status", payment_status, nullable=False),
        sa.Column("transaction_id", sa.String(255), unique=True),
        sa.Column("gateway_response", sa.JSON),
        sa.Column("note", sa.Text),
        sa.Column("reference", sa.String(255)),
        sa.Column("order_id", sa.Uuid, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("processed_by", sa.Uuid),
        *_timestamps(),
    )
    op.create_index("ix_payments_order", "payments", ["order_id"])
    op.create_index("ix_payments_status", "payments", ["status"])
    op.create_index("ix_payments_status_created", "payments", ["status", "created_at"])
    op.create_index("ix_payments_transaction_id", "payments", ["transaction_id"])
    op.create_index("ix_payments_processed_by", "payments", ["processed_by"])

    # --- Refunds ---
    op.create_table(
        "refunds",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", refund_status, nullable=False),
        sa.Column("refund_reference", sa.String(100), nullable=False, unique=True),
        sa.Column("payment_intent_id", sa.String(255)),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("order_id", sa.Uuid, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_refunds_order_id", "refunds", ["order_id"])

    # --- Inventory ---
    op.create_table(
        "inventories",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("sku", sa.String(100), nullable=False, unique=True),
        sa.Column("current_stock", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("reserved_stock", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("available_stock", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("low_stock_threshold", sa.Integer, nullable=False, server_default=sa.text("10")),
        sa.Column("reorder_point", sa.Integer, nullable=False, server_default=sa.text("5")),
        sa.Column("max_stock_level", sa.Integer, nullable=False, server_default=sa.text("1000")),
        sa.Column("is_low_stock", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("is_out_of_stock", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("last_restocked_at", sa.DateTime(timezone=True)),
        sa.Column("last_restocked_by", sa.Uuid),
        sa.Column("warehouse", sa.String(100)),
        sa.Column("aisle", sa.String(50)),
        sa.Column("shelf", sa.String(50)),
        sa.Column("bin", sa.String(50)),
        sa.Column("supplier_name", sa.String(255)),
        sa.Column("supplier_contact_email", sa.String(255)),
        sa.Column("supplier_contact_phone", sa.String(50)),
        sa.Column("supplier_lead_time_days", sa.Integer),
        sa.Column("product_id", sa.Uuid, sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("variant_id", sa.Uuid),
        *_timestamps(),
        sa.CheckConstraint("current_stock >= 0", name="ck_inventory_current_stock"),
        sa.CheckConstraint("reserved_stock >= 0", name="ck_inventory_reserved_stock"),
    )
    op.create_index("ix_inventories_product_variant", "inventories", ["product_id", "variant_id"])
    op.create_index("ix_inventories_is_low_stock", "inventories", ["is_low_stock"])
    op.create_index("ix_inventories_is_out_of_stock", "inventories", ["is_out_of_stock"])
    op.create_index("ix_inventories_last_restocked_at", "inventories", ["last_restocked_at"])
    op.create_index("ix_inventories_supplier_name", "inventories", ["supplier_name"])

    # --- Inventory transaction log ---
    op.create_table(
        "inventory_transactions",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("type", stock_transaction_type, nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("previous_stock", sa.Integer, nullable=False),
        sa.Column("new_stock", sa.Integer, nullable=False),
        sa.Column("reason", sa.String(500)),
        sa.Column("order_id", sa.Uuid),
        sa.Column("performed_by", sa.Uuid),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("inventory_id", sa.Uuid, sa.ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False),
    )
    op.create_index(
        "ix_inventory_transactions_inventory_created", "inventory_transactions", ["inventory_id", "created_at"]
    )
    op.create_index("ix_inventory_transactions_order_id", "inventory_transactions", ["order_id"])

    # --- Stock reservations ---
    op.create_table(
        "stock_reservations",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("status", reservation_status, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("released_at", sa.DateTime(timezone=True)),
        sa.Column("reason", sa.String(500)),
        sa.Column("inventory_id", sa.Uuid, sa.ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Uuid, nullable=False),
        sa.Column("variant_id", sa.Uuid),
        sa.Column("user_id", sa.Uuid, nullable=False),
        sa.Column("order_id", sa.Uuid),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 1", name="ck_stock_reservation_quantity"),
    )
    op.create_index("ix_stock_reservations_inventory_id", "stock_reservations", ["inventory_id"])
    op.create_index("ix_stock_reservations_user_id", "stock_reservations", ["user_id"])
    op.create_index("ix_stock_reservations_status_expires", "stock_reservations", ["status", "expires_at"])
    op.create_index("ix_stock_reservations_order_status", "stock_reservations", ["order_id", "status"])

    # --- Stock history ---
    op.create_table(
        "stock_histories",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("type", stock_history_type, nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("previous_stock", sa.Integer, nullable=False),
        sa.Column("new_stock", sa.Integer, nullable=False),
        sa.Column("reason", sa.String(500)),
        sa.Column("metadata", sa.JSON),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("inventory_id", sa.Uuid, nullable=False),
        sa.Column("product_id", sa.Uuid, nullable=False),
        sa.Column("variant_id", sa.Uuid),
        sa.Column("order_id", sa.Uuid),
        sa.Column("user_id", sa.Uuid),
    )
    op.create_index("ix_stock_histories_product_created", "stock_histories", ["product_id", "created_at"])
    op.create_index("ix_stock_histories_inventory_created", "stock_histories", ["inventory_id", "created_at"])
    op.create_index("ix_stock_histories_type_created", "stock_histories", ["type", "created_at"])
    op.create_index("ix_stock_histories_order_id", "stock_histories", ["order_id"])

    # --- Stock alerts ---
    op.create_table(
        "stock_alerts",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("type", alert_type, nullable=False),
        sa.Column("threshold", sa.Integer, nullable=False),
        sa.Column("current_stock", sa.Integer, nullable=False),
        sa.Column("status", alert_status, nullable=False),
        sa.Column("acknowledged_by", sa.Uuid),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True)),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
        sa.Column("notification_sent", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("notification_sent_at", sa.DateTime(timezone=True)),
        sa.Column("inventory_id", sa.Uuid, sa.ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Uuid, nullable=False),
        sa.Column("variant_id", sa.Uuid),
        *_timestamps(),
    )
    op.create_index("ix_stock_alerts_product_id", "stock_alerts", ["product_id"])
    op.create_index("ix_stock_alerts_status_created", "stock_alerts", ["status", "created_at"])
    op.create_index("ix_stock_alerts_inventory_type_status", "stock_alerts", ["inventory_id", "type", "status"])

    # --- Commission ledger ---
    op.create_table(
        "commission_entries",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("kind", commission_entry_kind, nullable=False),
        sa.Column("revenue", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("commission", sa.Numeric(12, 2), nullable=False),
        sa.Column("payout", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("order_id", sa.Uuid, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("vendor_id", sa.Uuid, sa.ForeignKey("vendors.id", ondelete="RESTRICT"), nullable=False),
    )
    op.create_index("ix_commission_entries_order_kind", "commission_entries", ["order_id", "kind"])
    op.create_index("ix_commission_entries_vendor_created", "commission_entries", ["vendor_id", "created_at"])


def downgrade() -> None:
    op.drop_table("commission_entries")
    op.drop_table("stock_alerts")
    op.drop_table("stock_histories")
    op.drop_table("stock_reservations")
    op.drop_table("inventory_transactions")
    op.drop_table("inventories")
    op.drop_table("refunds")
    op.drop_table("payments")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("products")
    op.drop_table("vendors")
    for enum_type in (
        commission_entry_kind, alert_status, alert_type, stock_history_type, reservation_status,
        stock_transaction_type, refund_status, payment_gateway, payment_status, commission_status,
        payment_method, order_status,
    ):
        enum_type.drop(op.get_bind(), checkfirst=True)
