import pytest

from dukkan.core.errors import NotFoundError, ValidationError
from dukkan.core.tenant_session import tenant_session
from dukkan.services.availability_requests import (
    STATUS_ALREADY_REQUESTED,
    STATUS_CREATED,
    merchant_summary,
    request_availability,
)
from dukkan.services.products import update_product
from tests.fixtures_data import STORE_A, STORE_B, build_memory_engine, seed_stores

TENANT = STORE_A["id"]


def _setup():
    _, scoped = seed_stores(build_memory_engine())
    with tenant_session(TENANT, scoped) as db:
        update_product(db, 10, is_available=False)
        update_product(db, 11, is_available=False)
    return scoped


def test_one_request_per_visitor_and_day():
    scoped = _setup()

    with tenant_session(TENANT, scoped) as db:
        first = request_availability(db, 10, "visitor_1")
    with tenant_session(TENANT, scoped) as db:
        again = request_availability(db, 10, " visitor_1 ")

    assert first["status"] == STATUS_CREATED
    assert again["status"] == STATUS_ALREADY_REQUESTED
    assert again["requested_at"] == first["requested_at"]
    assert again["product_id"] == 10


def test_only_unavailable_products_of_the_store_can_be_requested():
    scoped = _setup()

    with tenant_session(TENANT, scoped) as db:
        with pytest.raises(ValidationError):
            request_availability(db, 12, "visitor_1")
        with pytest.raises(NotFoundError):
            request_availability(db, 20, "visitor_1")
        with pytest.raises(ValidationError):
            request_availability(db, 10, "  ")

    with tenant_session(TENANT, scoped) as db:
        update_product(db, 11, is_active=False)
    with tenant_session(TENANT, scoped) as db:
        with pytest.raises(NotFoundError):
            request_availability(db, 11, "visitor_1")


def test_merchant_summary_ranks_requested_products():
    scoped = _setup()

    for visitor, product_id in (("v1", 10), ("v2", 10), ("v3", 11), ("v1", 11), ("v4", 10)):
        with tenant_session(TENANT, scoped) as db:
            request_availability(db, product_id, visitor)

    with tenant_session(TENANT, scoped) as db:
        summary = merchant_summary(db)
        assert summary["today_total_requests"] == 5
        assert [(row["product_id"], row["requests_count"]) for row in summary["top_products"]] == [(10, 3), (11, 2)]
        assert summary["top_products"][0]["product_name"] == "Rice 1kg"

        assert len(merchant_summary(db, limit=1)["top_products"]) == 1
        assert len(merchant_summary(db, days=99, limit=0)["top_products"]) == 1

    with tenant_session(STORE_B["id"], scoped) as db:
        assert merchant_summary(db) == {"today_total_requests": 0, "top_products": []}
