from __future__ import annotations

from alembic import op


revision = "0002_tenant_row_security"
down_revision = "0001_core_schema"
branch_labels = None
depends_on = None

TENANT_TABLES = ("products", "customers", "orders", "order_items")

CURRENT_TENANT_FUNCTION = """
CREATE OR REPLACE FUNCTION app.current_tenant_id()
RETURNS integer
LANGUAGE plpgsql
STABLE
AS $$
DECLARE
    tenant_value text;
BEGIN
    tenant_value := current_setting('app.tenant_id', true);
    IF tenant_value IS NULL OR tenant_value = '' THEN
        -- tracking lookups run without a tenant and are matched by their own policy
        IF coalesce(current_setting('app.lookup_order_token', true), '') <> '' THEN
            RETURN NULL;
        END IF;
        RAISE EXCEPTION 'app.tenant_id is not set';
    END IF;
    RETURN tenant_value::integer;
END;
$$
"""

RESOLVE_BY_SLUG_FUNCTION = """
CREATE OR REPLACE FUNCTION app.resolve_tenant_id_by_slug(p_slug text)
RETURNS integer
LANGUAGE sql
STABLE
AS $$
    SELECT t.id
    FROM tenants t
    WHERE t.slug = p_slug
      AND t.status = 'active'
    LIMIT 1
$$
"""

RESOLVE_BY_ORDER_TOKEN_FUNCTION = """
CREATE OR REPLACE FUNCTION app.resolve_tenant_id_by_order_token(p_token text)
RETURNS integer
LANGUAGE plpgsql
VOLATILE
AS $$
DECLARE
    v_tenant_id integer;
BEGIN
    PERFORM set_config('app.lookup_order_token', p_token, true);

    SELECT o.tenant_id
    INTO v_tenant_id
    FROM orders o
    WHERE o.public_token = p_token
    LIMIT 1;

    RETURN v_tenant_id;
END;
$$
"""


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def upgrade() -> None:
    # SQLite relies on the application-level tenant guards only
    if not _is_postgres():
        return

    op.execute("CREATE SCHEMA IF NOT EXISTS app")
    op.execute(CURRENT_TENANT_FUNCTION)
    op.execute(RESOLVE_BY_SLUG_FUNCTION)
    op.execute(RESOLVE_BY_ORDER_TOKEN_FUNCTION)

    for table_name in TENANT_TABLES:
        op.execute(f'ALTER TABLE "{table_name}" ENABLE ROW LEVEL SECURITY')
        op.execute(f'ALTER TABLE "{table_name}" FORCE ROW LEVEL SECURITY')
        op.execute(f'DROP POLICY IF EXISTS "tenant_isolation_{table_name}" ON "{table_name}"')
        op.execute(
            f"""
            CREATE POLICY "tenant_isolation_{table_name}"
            ON "{table_name}"
            USING (tenant_id = app.current_tenant_id())
            WITH CHECK (tenant_id = app.current_tenant_id())
            """
        )

    op.execute('DROP POLICY IF EXISTS "tracking_token_lookup_orders" ON "orders"')
    op.execute(
        """
        CREATE POLICY "tracking_token_lookup_orders"
        ON "orders"
        FOR SELECT
        USING (
            coalesce(current_setting('app.lookup_order_token', true), '') <> ''
            AND public_token = current_setting('app.lookup_order_token', true)
        )
        """
    )


def downgrade() -> None:
    if not _is_postgres():
        return

    op.execute('DROP POLICY IF EXISTS "tracking_token_lookup_orders" ON "orders"')
    for table_name in reversed(TENANT_TABLES):
        op.execute(f'DROP POLICY IF EXISTS "tenant_isolation_{table_name}" ON "{table_name}"')
        op.execute(f'ALTER TABLE "{table_name}" NO FORCE ROW LEVEL SECURITY')
        op.execute(f'ALTER TABLE "{table_name}" DISABLE ROW LEVEL SECURITY')

    op.execute("DROP FUNCTION IF EXISTS app.resolve_tenant_id_by_order_token(text)")
    op.execute("DROP FUNCTION IF EXISTS app.resolve_tenant_id_by_slug(text)")
    op.execute("DROP FUNCTION IF EXISTS app.current_tenant_id()")
