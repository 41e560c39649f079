from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0003_day_closures"
down_revision = "0002_tenant_row_security"
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    tables = set(inspect(bind).get_table_names())

    if "day_closures" not in tables:
        op.create_table(
            "day_closures",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("closure_date", sa.Date(), nullable=False),
            sa.Column("orders_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("completed_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("cancelled_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("completed_sales_total", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("closed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.UniqueConstraint("tenant_id", "closure_date", name="uq_day_closures_tenant_date"),
        )
        op.create_index("ix_day_closures_tenant_id", "day_closures", ["tenant_id"], unique=False)

    if bind.dialect.name != "postgresql":
        return

    op.execute('ALTER TABLE "day_closures" ENABLE ROW LEVEL SECURITY')
    op.execute('ALTER TABLE "day_closures" FORCE ROW LEVEL SECURITY')
    op.execute('DROP POLICY IF EXISTS "tenant_isolation_day_closures" ON "day_closures"')
    op.execute(
        """
        CREATE POLICY "tenant_isolation_day_closures"
        ON "day_closures"
        USING (tenant_id = app.current_tenant_id())
        WITH CHECK (tenant_id = app.current_tenant_id())
        """
    )


def downgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        op.execute('DROP POLICY IF EXISTS "tenant_isolation_day_closures" ON "day_closures"')
    op.drop_index("ix_day_closures_tenant_id", table_name="day_closures")
    op.drop_table("day_closures")
