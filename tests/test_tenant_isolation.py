from decimal import Decimal
from types import SimpleNamespace

import pytest

from dukkan.core import tenant_session as tenant_session_module
from dukkan.core.database import Base
from dukkan.core.errors import TenantContextMissingError, TenantIsolationError
from dukkan.core.tenant_context import tenant_scope
from dukkan.core.tenant_session import (
    LOOKUP_TOKEN_KEY,
    TenantScoped,
    TenantSession,
    tenant_session,
    with_tenant,
)
from dukkan.models.customer import Customer
from dukkan.models.order import Order
from dukkan.models.product import Product
from dukkan.services.orders import create_order
from tests.fixtures_data import CUSTOMER_PHONE, STORE_A, STORE_B, build_memory_engine, seed_stores


def _setup():
    engine = build_memory_engine()
    plain, scoped = seed_stores(engine)
    return engine, plain, scoped


def test_opening_tenant_session_without_tenant_fails_closed():
    _, _, scoped = _setup()

    with pytest.raises(TenantContextMissingError):
        scoped()


def test_queries_only_return_rows_of_the_bound_tenant():
    _, _, scoped = _setup()

    with tenant_session(STORE_A["id"], scoped) as db:
        names = {product.name for product in db.query(Product).all()}
        assert names == {"Rice 1kg", "Basmati Rice 1kg", "Sugar 1kg"}
        # primary key lookups are filtered as well
        assert db.get(Product, 20) is None

    with tenant_session(STORE_B["id"], scoped) as db:
        assert [product.id for product in db.query(Product).all()] == [20]


def test_new_rows_are_stamped_with_the_session_tenant():
    _, plain, scoped = _setup()

    with tenant_session(STORE_A["id"], scoped) as db:
        db.add(Product(name="Tea", price=Decimal("12.00")))

    db = plain()
    product = db.query(Product).filter(Product.name == "Tea").one()
    assert product.tenant_id == STORE_A["id"]
    db.close()


def test_writing_a_row_for_another_tenant_is_refused():
    _, plain, scoped = _setup()

    with pytest.raises(TenantIsolationError):
        with tenant_session(STORE_A["id"], scoped) as db:
            db.add(Product(tenant_id=STORE_B["id"], name="Smuggled", price=Decimal("1.00")))

    db = plain()
    assert db.query(Product).filter(Product.name == "Smuggled").count() == 0
    db.close()


def test_moving_a_row_to_another_tenant_is_refused():
    _, _, scoped = _setup()

    with pytest.raises(TenantIsolationError):
        with tenant_session(STORE_A["id"], scoped) as db:
            product = db.get(Product, 10)
            product.tenant_id = STORE_B["id"]


def test_session_used_under_a_different_tenant_is_refused():
    _, _, scoped = _setup()

    with tenant_scope(STORE_A["id"]):
        db = scoped()
    try:
        with tenant_scope(STORE_B["id"]):
            with pytest.raises(TenantIsolationError):
                db.query(Product).all()
    finally:
        db.close()


def test_unit_of_work_rolls_back_everything_on_failure():
    _, plain, scoped = _setup()

    def place_then_fail(db):
        create_order(db, customer_phone=CUSTOMER_PHONE, items=[{"product_id": 10, "quantity": 1}])
        raise RuntimeError("payment provider down")

    with pytest.raises(RuntimeError):
        with_tenant(STORE_A["id"], place_then_fail, scoped)

    db = plain()
    assert db.query(Customer).count() == 0
    db.close()


def test_with_tenant_returns_the_unit_of_work_result():
    _, _, scoped = _setup()

    count = with_tenant(STORE_B["id"], lambda db: db.query(Product).count(), scoped)

    assert count == 1


def test_every_scoped_table_carries_the_tenant_column():
    scoped_tables = {
        mapper.class_.__tablename__
        for mapper in Base.registry.mappers
        if issubclass(mapper.class_, TenantScoped)
    }
    assert scoped_tables == {
        "products",
        "customers",
        "orders",
        "order_items",
        "day_closures",
        "availability_requests",
    }

    for name in scoped_tables:
        column = Base.metadata.tables[name].c.tenant_id
        assert not column.nullable
        assert [fk.target_fullname for fk in column.foreign_keys] == ["tenants.id"]


def test_joined_queries_are_filtered_on_every_scoped_entity():
    _, _, scoped = _setup()

    with tenant_session(STORE_A["id"], scoped) as db:
        create_order(db, customer_phone=CUSTOMER_PHONE, items=[{"product_id": 10}])

    with tenant_session(STORE_B["id"], scoped) as db:
        rows = db.query(Order, Customer).join(Order.customer).filter(Customer.phone == CUSTOMER_PHONE).all()
        assert rows == []

    with tenant_session(STORE_A["id"], scoped) as db:
        rows = db.query(Order, Customer).join(Order.customer).filter(Customer.phone == CUSTOMER_PHONE).all()
        assert len(rows) == 1


def test_postgres_tenant_settings_are_transaction_local(monkeypatch):
    monkeypatch.setattr(tenant_session_module, "DB_STATEMENT_TIMEOUT_MS", 250)
    statements = []
    connection = SimpleNamespace(
        dialect=SimpleNamespace(name="postgresql"),
        execute=lambda statement, params=None: statements.append((str(statement), params)),
    )

    with tenant_scope(STORE_A["id"]):
        session = TenantSession()
        session.info[LOOKUP_TOKEN_KEY] = "token-1"
        tenant_session_module._set_tenant_setting(session, SimpleNamespace(nested=False), connection)

    assert statements == [
        ("SELECT set_config('app.tenant_id', :tenant_id, true)", {"tenant_id": str(STORE_A["id"])}),
        ("SELECT set_config('app.lookup_order_token', :token, true)", {"token": "token-1"}),
        ("SET LOCAL statement_timeout = 250", None),
    ]

    statements.clear()
    with tenant_scope(STORE_A["id"]):
        tenant_session_module._set_tenant_setting(session, SimpleNamespace(nested=True), connection)
    assert statements == []
