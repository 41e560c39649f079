from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0004_availability_requests"
down_revision = "0003_day_closures"
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    tables = set(inspect(bind).get_table_names())

    if "availability_requests" not in tables:
        op.create_table(
            "availability_requests",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
            sa.Column("visitor_key", sa.String(length=64), nullable=False),
            sa.Column("request_date", sa.Date(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.UniqueConstraint(
                "tenant_id",
                "product_id",
                "visitor_key",
                "request_date",
                name="uq_availability_requests_tenant_product_visitor_date",
            ),
        )
        op.create_index("ix_availability_requests_tenant_id", "availability_requests", ["tenant_id"])
        op.create_index("ix_availability_requests_product_id", "availability_requests", ["product_id"])
        op.create_index("ix_availability_requests_visitor_key", "availability_requests", ["visitor_key"])
        op.create_index("ix_availability_requests_request_date", "availability_requests", ["request_date"])

    if bind.dialect.name != "postgresql":
        return

    op.execute('ALTER TABLE "availability_requests" ENABLE ROW LEVEL SECURITY')
    op.execute('ALTER TABLE "availability_requests" FORCE ROW LEVEL SECURITY')
    op.execute('DROP POLICY IF EXISTS "tenant_isolation_availability_requests" ON "availability_requests"')
    op.execute(
        """
        CREATE POLICY "tenant_isolation_availability_requests"
        ON "availability_requests"
        USING (tenant_id = app.current_tenant_id())
        WITH CHECK (tenant_id = app.current_tenant_id())
        """
    )


def downgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        op.execute('DROP POLICY IF EXISTS "tenant_isolation_availability_requests" ON "availability_requests"')
    op.drop_table("availability_requests")
