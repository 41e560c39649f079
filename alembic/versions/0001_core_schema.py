from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql


revision = "0001_core_schema"
down_revision = None
branch_labels = None
depends_on = None


def _json_type(bind):
    if bind.dialect.name == "sqlite":
        return sa.JSON()
    return postgresql.JSONB(astext_type=sa.Text())


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    if "tenants" not in tables:
        op.create_table(
            "tenants",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("phone", sa.String(length=30), nullable=False),
            sa.Column("slug", sa.String(length=120), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("category", sa.String(length=40), nullable=True),
            sa.Column("customer_counter", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_tenants_phone", "tenants", ["phone"], unique=True)
        op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)

    if "products" not in tables:
        op.create_table(
            "products",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("sku", sa.String(length=64), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("current_price", sa.Numeric(10, 2), nullable=True),
            sa.Column("order_mode", sa.String(length=20), nullable=False, server_default="quantity"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_products_tenant_id", "products", ["tenant_id"], unique=False)

    if "customers" not in tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("code", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=True),
            sa.Column("phone", sa.String(length=30), nullable=False),
            sa.Column("address", sa.Text(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("merchant_label", sa.String(length=60), nullable=True),
            sa.Column("order_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("completed_order_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("first_order_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_order_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.UniqueConstraint("tenant_id", "phone", name="uq_customers_tenant_phone"),
            sa.UniqueConstraint("tenant_id", "code", name="uq_customers_tenant_code"),
        )
        op.create_index("ix_customers_tenant_id", "customers", ["tenant_id"], unique=False)
        op.create_index("ix_customers_phone", "customers", ["phone"], unique=False)

    if "orders" not in tables:
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("public_token", sa.String(length=64), nullable=False),
            sa.Column("order_type", sa.String(length=20), nullable=False, server_default="catalog"),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
            sa.Column("pricing_mode", sa.String(length=10), nullable=False, server_default="auto"),
            sa.Column("subtotal", sa.Numeric(10, 2), nullable=True),
            sa.Column("delivery_fee", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("total", sa.Numeric(10, 2), nullable=True),
            sa.Column("free_text_payload", _json_type(bind), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("customer_name", sa.String(length=120), nullable=True),
            sa.Column("customer_phone", sa.String(length=30), nullable=True),
            sa.Column("delivery_address", sa.Text(), nullable=True),
            sa.Column("customer_rejection_reason", sa.Text(), nullable=True),
            sa.Column("customer_rejected_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_orders_public_token", "orders", ["public_token"], unique=True)
        op.create_index("ix_orders_tenant_id", "orders", ["tenant_id"], unique=False)
        op.create_index("ix_orders_customer_id", "orders", ["customer_id"], unique=False)
        op.create_index("ix_orders_status", "orders", ["status"], unique=False)
        op.create_index("ix_orders_tenant_created_at", "orders", ["tenant_id", "created_at"], unique=False)

    if "order_items" not in tables:
        op.create_table(
            "order_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
            sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=True),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("unit_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("total", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("selection_mode", sa.String(length=20), nullable=True),
            sa.Column("selection_quantity", sa.Integer(), nullable=True),
            sa.Column("selection_grams", sa.Integer(), nullable=True),
            sa.Column("selection_amount", sa.Numeric(10, 2), nullable=True),
            sa.Column("unit_option_id", sa.String(length=64), nullable=True),
            sa.Column("pending_replacement_product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=True),
            sa.Column("replacement_decision_status", sa.String(length=10), nullable=False, server_default="none"),
            sa.Column("replacement_decision_reason", sa.Text(), nullable=True),
            sa.Column("replacement_decided_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        )
        op.create_index("ix_order_items_tenant_id", "order_items", ["tenant_id"], unique=False)
        op.create_index("ix_order_items_order_id", "order_items", ["order_id"], unique=False)


def downgrade() -> None:
    bind = op.get_bind()
    tables = set(inspect(bind).get_table_names())
    for table_name in ("order_items", "orders", "customers", "products", "tenants"):
        if table_name in tables:
            op.drop_table(table_name)
