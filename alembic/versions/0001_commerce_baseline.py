"""commerce_baseline

Revision ID: 0001_commerce_baseline
Revises: None
Create Date: 2026-10-18

Creates the commerce schema:
- products, product_stock: catalog snapshot and stock ledger counters
- carts, cart_items: one cart per user
- coupons, coupon_usages, campaigns, campaign_usages: promotions and their usage ledgers
- orders, order_sequences, payments: orders, daily numbering and gateway attempts
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_commerce_baseline"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
    ]


def upgrade() -> None:
    """Create commerce tables."""

    # ==========================================================================
    # 1. Catalog and stock ledger
    # ==========================================================================
    op.create_table(
        "products",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(14, 2), nullable=False),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("category_id", sa.String(64), nullable=True),
        sa.Column("brand", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_products_category_id", "products", ["category_id"])
    op.create_index("ix_products_brand", "products", ["brand"])
    op.create_index("ix_products_status", "products", ["status"])

    op.create_table(
        "product_stock",
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("on_hand", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reserved", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sold", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("product_id"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.CheckConstraint("on_hand >= 0", name="ck_product_stock_on_hand"),
        sa.CheckConstraint("reserved >= 0", name="ck_product_stock_reserved"),
        sa.CheckConstraint("reserved <= on_hand", name="ck_product_stock_reserved_le_on_hand"),
        sa.CheckConstraint("sold >= 0", name="ck_product_stock_sold"),
    )

    # ==========================================================================
    # 2. Carts
    # ==========================================================================
    op.create_table(
        "carts",
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("coupon", JSONB(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_index("ix_carts_expires_at", "carts", ["expires_at"])

    op.create_table(
        "cart_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("cart_user_id", sa.String(64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("unit_discount_percent", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("category_id", sa.String(64), nullable=True),
        sa.Column("brand", sa.String(100), nullable=True),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["cart_user_id"], ["carts.user_id"], ondelete="CASCADE"),
    )
    op.create_index("ix_cart_items_cart_user_id", "cart_items", ["cart_user_id"])

    # ==========================================================================
    # 3. Promotions
    # ==========================================================================
    op.create_table(
        "coupons",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(20), nullable=False),
        sa.Column("discount_value", sa.Numeric(14, 2), nullable=False),
        sa.Column("minimum_amount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("maximum_discount", sa.Numeric(14, 2), nullable=True),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("per_user_limit", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("scope", JSONB(), nullable=True),
        sa.Column("user_ids", JSONB(), nullable=True),
        sa.Column("free_shipping", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_coupons_code", "coupons", ["code"], unique=True)
    op.create_index("ix_coupons_is_active", "coupons", ["is_active"])

    op.create_table(
        "coupon_usages",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("coupon_id", UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("order_id", UUID(as_uuid=True), nullable=False),
        sa.Column("discount_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["coupon_id"], ["coupons.id"]),
        sa.UniqueConstraint("coupon_id", "order_id", name="uq_coupon_usages_coupon_order"),
    )
    op.create_index("idx_coupon_usages_coupon_user", "coupon_usages", ["coupon_id", "user_id"])

    op.create_table(
        "campaigns",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("campaign_type", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rules", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("audience", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("scope", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_stackable", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("requires_coupon", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("coupon_code", sa.String(20), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_campaigns_status_dates", "campaigns", ["status", "start_date", "end_date"])

    op.create_table(
        "campaign_usages",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("campaign_id", UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("order_id", UUID(as_uuid=True), nullable=False),
        sa.Column("discount_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.UniqueConstraint("campaign_id", "order_id", name="uq_campaign_usages_campaign_order"),
    )
    op.create_index("idx_campaign_usages_campaign_user", "campaign_usages", ["campaign_id", "user_id"])

    # ==========================================================================
    # 4. Orders and payments
    # ==========================================================================
    op.create_table(
        "orders",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("order_number", sa.String(50), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("lines", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("status_history", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("payment", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("shipping_address", JSONB(), nullable=True),
        sa.Column("shipping_method", sa.String(20), nullable=False, server_default=sa.text("'normal'")),
        sa.Column("shipping_cost", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("tracking_code", sa.String(100), nullable=True),
        sa.Column("customer_notes", sa.Text(), nullable=True),
        sa.Column("subtotal", sa.Numeric(14, 2), nullable=False),
        sa.Column("product_discount_total", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("coupon_discount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("campaign_discount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_discount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("coupon_code", sa.String(20), nullable=True),
        sa.Column("applied_discounts", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("return_reason", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("idx_orders_user_created", "orders", ["user_id", "created_at"])
    op.create_index("idx_orders_user_status", "orders", ["user_id", "status"])

    op.create_table(
        "order_sequences",
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("day"),
    )

    op.create_table(
        "payments",
        sa.Column("id", UUID(as_uuid=True), nullable=False),
        sa.Column("order_id", UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("reference", sa.String(50), nullable=False),
        sa.Column("gateway", sa.String(50), nullable=False),
        sa.Column("method", sa.String(20), nullable=False, server_default=sa.text("'online'")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("authority", sa.String(100), nullable=True),
        sa.Column("transaction_id", sa.String(100), nullable=True),
        sa.Column("failure_reason", sa.String(255), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.UniqueConstraint("reference", name="uq_payments_reference"),
    )
    op.create_index("ix_payments_order_id", "payments", ["order_id"])
    op.create_index("ix_payments_status", "payments", ["status"])
    op.create_index("ix_payments_authority", "payments", ["authority"], unique=True)


def downgrade() -> None:
    """Drop commerce tables."""
    op.drop_table("payments")
    op.drop_table("order_sequences")
    op.drop_table("orders")
    op.drop_table("campaign_usages")
    op.drop_table("campaigns")
    op.drop_table("coupon_usages")
    op.drop_table("coupons")
    op.drop_table("cart_items")
    op.drop_table("carts")
    op.drop_table("product_stock")
    op.drop_table("products")
