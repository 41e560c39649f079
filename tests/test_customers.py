import pytest

from dukkan.core.errors import NotFoundError, ValidationError
from dukkan.core.tenant_session import tenant_session
from dukkan.models.tenant import Tenant
from dukkan.services.customers import (
    find_or_create_customer,
    get_customer,
    get_customer_by_phone,
    label_customer,
    list_customers,
    normalize_phone,
)
from dukkan.services.orders import create_order
from tests.fixtures_data import CUSTOMER_PHONE, STORE_A, STORE_B, build_memory_engine, seed_stores


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("01000000001", "+201000000001"),
        ("010 0000 0001", "+201000000001"),
        ("201000000001", "+201000000001"),
        ("+20 100-000-0001", "+201000000001"),
        ("+966500000000", "+966500000000"),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "12-34", "phone"])
def test_normalize_phone_rejects_garbage(raw):
    with pytest.raises(ValidationError):
        normalize_phone(raw)


def test_same_phone_maps_to_one_customer_per_store():
    plain, scoped = seed_stores(build_memory_engine())

    with tenant_session(STORE_A["id"], scoped) as db:
        first = find_or_create_customer(db, phone="01000000001", name=" Mona ")
        again = find_or_create_customer(db, phone=CUSTOMER_PHONE, name="Someone else")
        assert again.id == first.id
        assert first.name == "Mona"
        assert first.code == 1
        second = find_or_create_customer(db, phone="01000000002")
        assert second.code == 2

    with tenant_session(STORE_B["id"], scoped) as db:
        other = find_or_create_customer(db, phone=CUSTOMER_PHONE)
        assert other.code == 1
        assert other.tenant_id == STORE_B["id"]
        assert get_customer_by_phone(db, "01000000002") is None

    db = plain()
    assert db.get(Tenant, STORE_A["id"]).customer_counter == 2
    db.close()


def test_list_customers_searches_and_pages():
    plain, scoped = seed_stores(build_memory_engine())

    with tenant_session(STORE_A["id"], scoped) as db:
        create_order(db, customer_phone=CUSTOMER_PHONE, customer_name="Mona", items=[{"product_id": 10}])
        create_order(db, customer_phone="01000000002", customer_name="Karim", items=[{"product_id": 12}])
        create_order(db, customer_phone="01000000002", items=[{"product_id": 12}])
        find_or_create_customer(db, phone="01000000003", name="Mostafa")

    with tenant_session(STORE_B["id"], scoped) as db:
        find_or_create_customer(db, phone="01000000004", name="Mohamed")

    with tenant_session(STORE_A["id"], scoped) as db:
        customers, total = list_customers(db)
        assert total == 3
        assert {customer.name for customer in customers} == {"Mona", "Karim", "Mostafa"}
        assert customers[-1].name == "Mostafa"

        customers, total = list_customers(db, search="mo")
        assert total == 2
        assert {customer.name for customer in customers} == {"Mona", "Mostafa"}

        customers, total = list_customers(db, search="0000002")
        assert [customer.name for customer in customers] == ["Karim"]
        assert customers[0].order_count == 2

        customers, total = list_customers(db, page=2, limit=2)
        assert total == 3
        assert len(customers) == 1

        with pytest.raises(ValidationError):
            list_customers(db, limit=500)


def test_label_customer_sets_and_clears_the_label():
    plain, scoped = seed_stores(build_memory_engine())

    with tenant_session(STORE_A["id"], scoped) as db:
        customer_id = find_or_create_customer(db, phone=CUSTOMER_PHONE).id

    with tenant_session(STORE_A["id"], scoped) as db:
        customer = label_customer(db, customer_id, label=" VIP ", notes="ring twice")
        assert customer.merchant_label == "VIP"
        assert customer.notes == "ring twice"

    with tenant_session(STORE_A["id"], scoped) as db:
        customer = label_customer(db, customer_id, label="")
        assert customer.merchant_label is None
        assert customer.notes == "ring twice"
        with pytest.raises(ValidationError):
            label_customer(db, customer_id, label="x" * 61)

    with tenant_session(STORE_B["id"], scoped) as db:
        with pytest.raises(NotFoundError):
            get_customer(db, customer_id)
        with pytest.raises(NotFoundError):
            label_customer(db, customer_id, label="stolen")
