from datetime import date, timedelta
from decimal import Decimal

import pytest

from dukkan.core.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    OwnershipError,
    ValidationError,
)
from dukkan.core.tenant_session import tenant_session
from dukkan.models.customer import Customer
from dukkan.models.order import Order
from dukkan.models.order_item import OrderItem
from dukkan.models.product import Product
from dukkan.services import orders as order_service
from tests.fixtures_data import CUSTOMER_PHONE, STORE_A, STORE_B, build_memory_engine, seed_stores

TENANT = STORE_A["id"]


def _setup():
    engine = build_memory_engine()
    return seed_stores(engine)


def _place(scoped, tenant_id=TENANT, **kwargs):
    kwargs.setdefault("customer_phone", CUSTOMER_PHONE)
    kwargs.setdefault("items", [{"product_id": 10, "quantity": 2}, {"product_id": 12, "quantity": 1}])
    with tenant_session(tenant_id, scoped) as db:
        order = order_service.create_order(db, **kwargs)
        return order.id, order.public_token, [item.id for item in order.items]


def _load(scoped, fn, tenant_id=TENANT):
    with tenant_session(tenant_id, scoped) as db:
        return fn(db)


def _customer(plain, tenant_id=TENANT, phone=CUSTOMER_PHONE):
    db = plain()
    customer = db.query(Customer).filter(Customer.tenant_id == tenant_id, Customer.phone == phone).one()
    db.close()
    return customer


def _order(plain, order_id):
    db = plain()
    order = db.get(Order, order_id)
    items = db.query(OrderItem).filter(OrderItem.order_id == order_id).order_by(OrderItem.id).all()
    db.close()
    return order, items


def test_create_order_snapshots_items_and_prices():
    plain, scoped = _setup()

    order_id, token, _ = _place(scoped, customer_name="Mona", delivery_fee=Decimal("10"))

    order, items = _order(plain, order_id)
    assert order.status == "draft"
    assert order.pricing_mode == "auto"
    assert order.customer_name == "Mona"
    assert order.customer_phone == CUSTOMER_PHONE
    assert order.subtotal == Decimal("108.50")
    assert order.total == Decimal("118.50")
    assert order.public_token == token
    assert [(item.title, item.unit_price, item.quantity) for item in items] == [
        ("Rice 1kg", Decimal("40.00"), 2),
        ("Sugar 1kg", Decimal("28.50"), 1),
    ]
    assert all(item.replacement_decision_status == "none" for item in items)


def test_first_order_registers_customer_with_stats():
    plain, scoped = _setup()

    _place(scoped)

    customer = _customer(plain)
    assert customer.code == 1
    assert customer.order_count == 1
    assert customer.completed_order_count == 0
    assert customer.first_order_at is not None
    assert customer.last_order_at == customer.first_order_at


def test_local_phone_format_reuses_the_same_customer():
    plain, scoped = _setup()

    _place(scoped)
    _place(scoped, customer_phone="01000000001")
    _place(scoped, customer_phone="01000000002")

    first = _customer(plain)
    assert first.code == 1
    assert first.order_count == 2
    assert first.last_order_at >= first.first_order_at
    assert _customer(plain, phone="+201000000002").code == 2


def test_customer_codes_are_per_store():
    plain, scoped = _setup()

    _place(scoped)
    _place(scoped, tenant_id=STORE_B["id"], items=[{"product_id": 20, "quantity": 1}])

    assert _customer(plain, tenant_id=STORE_A["id"]).code == 1
    assert _customer(plain, tenant_id=STORE_B["id"]).code == 1


def test_manual_total_wins_over_item_prices():
    plain, scoped = _setup()

    order_id, _, _ = _place(scoped, total=Decimal("95"))

    order, _ = _order(plain, order_id)
    assert order.pricing_mode == "manual"
    assert order.total == Decimal("95.00")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"items": []},
        {"items": [{"product_id": 10, "quantity": 0}]},
        {"items": [{"title": "Bread", "unit_price": -1}]},
        {"items": [{"title": "Bread"}]},
        {"customer_phone": "12"},
        {"order_type": "subscription"},
        {"order_type": "free_text", "items": []},
    ],
)
def test_create_order_validation(kwargs):
    _, scoped = _setup()

    with pytest.raises(ValidationError):
        _place(scoped, **kwargs)


def test_catalog_items_must_belong_to_the_store():
    plain, scoped = _setup()

    with pytest.raises(OwnershipError):
        _place(scoped, items=[{"product_id": 20, "quantity": 1}])

    db = plain()
    assert db.query(Order).count() == 0
    db.close()


def test_free_text_order_is_priced_later_by_the_merchant():
    plain, scoped = _setup()

    order_id, _, item_ids = _place(
        scoped,
        order_type="free_text",
        items=[{"title": "2 kg tomatoes", "unit_price": 0, "quantity": 1}],
        free_text_payload={"text": "2 kg tomatoes"},
        delivery_fee=Decimal("5"),
    )
    _load(scoped, lambda db: order_service.update_item_price(db, item_ids[0], "24.75"))

    order, items = _order(plain, order_id)
    assert items[0].unit_price == Decimal("24.75")
    assert order.subtotal == Decimal("24.75")
    assert order.total == Decimal("29.75")
    assert order.free_text_payload == {"text": "2 kg tomatoes"}


def test_confirm_then_complete_counts_completed_order():
    plain, scoped = _setup()
    order_id, _, _ = _place(scoped)

    _load(scoped, lambda db: order_service.transition_order_status(db, order_id, "confirmed"))
    _load(scoped, lambda db: order_service.transition_order_status(db, order_id, "completed"))

    order, _ = _order(plain, order_id)
    assert order.status == "completed"
    customer = _customer(plain)
    assert customer.code == 1
    assert customer.order_count == 1
    assert customer.completed_order_count == 1

    with pytest.raises(InvalidTransitionError):
        _load(scoped, lambda db: order_service.transition_order_status(db, order_id, "cancelled"))
    order, _ = _order(plain, order_id)
    assert order.status == "completed"
    assert _customer(plain).completed_order_count == 1


def test_delivery_path_and_refused_shortcuts():
    plain, scoped = _setup()
    order_id, _, _ = _place(scoped)

    with pytest.raises(InvalidTransitionError):
        _load(scoped, lambda db: order_service.transition_order_status(db, order_id, "out_for_delivery"))
    with pytest.raises(InvalidTransitionError):
        _load(scoped, lambda db: order_service.transition_order_status(db, order_id, "draft"))

    for status in ("confirmed", "out_for_delivery", "completed"):
        _load(scoped, lambda db, status=status: order_service.transition_order_status(db, order_id, status))

    order, _ = _order(plain, order_id)
    assert order.status == "completed"
    assert order.status_changed_at is not None


def test_unknown_status_is_a_validation_error():
    _, scoped = _setup()
    order_id, _, _ = _place(scoped)

    with pytest.raises(ValidationError):
        _load(scoped, lambda db: order_service.transition_order_status(db, order_id, "shipped"))


def test_other_stores_orders_are_not_found():
    _, scoped = _setup()
    order_id, token, item_ids = _place(scoped)

    tenant_b = STORE_B["id"]
    with pytest.raises(NotFoundError):
        _load(scoped, lambda db: order_service.get_order(db, order_id), tenant_id=tenant_b)
    with pytest.raises(NotFoundError):
        _load(scoped, lambda db: order_service.transition_order_status(db, order_id, "confirmed"), tenant_id=tenant_b)
    with pytest.raises(NotFoundError):
        _load(scoped, lambda db: order_service.reset_replacement(db, item_ids[0]), tenant_id=tenant_b)
    with pytest.raises(NotFoundError, match="Order not found"):
        _load(scoped, lambda db: order_service.get_order_by_token(db, token), tenant_id=tenant_b)


def test_propose_and_approve_replacement_reprices_the_order():
    plain, scoped = _setup()
    order_id, token, item_ids = _place(scoped)

    _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[0], 11))
    _, items = _order(plain, order_id)
    assert items[0].replacement_decision_status == "pending"
    assert items[0].pending_replacement_product_id == 11

    _load(scoped, lambda db: order_service.decide_replacement(db, item_ids[0], "approve", order_token=token))

    order, items = _order(plain, order_id)
    assert items[0].replacement_decision_status == "approved"
    assert items[0].product_id == 11
    assert items[0].title == "Basmati Rice 1kg"
    assert items[0].unit_price == Decimal("55.00")
    assert items[0].total == Decimal("110.00")
    assert items[0].pending_replacement_product_id is None
    assert items[0].replacement_decided_at is not None
    assert order.subtotal == Decimal("138.50")
    assert order.total == Decimal("138.50")


def test_rejected_replacement_keeps_the_declined_product():
    plain, scoped = _setup()
    order_id, token, item_ids = _place(scoped)

    _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[0], 11))
    _load(
        scoped,
        lambda db: order_service.decide_replacement(db, item_ids[0], "reject", "too expensive", order_token=token),
    )

    order, items = _order(plain, order_id)
    assert items[0].replacement_decision_status == "rejected"
    assert items[0].replacement_decision_reason == "too expensive"
    assert items[0].pending_replacement_product_id == 11
    assert items[0].product_id == 10
    assert order.total == Decimal("108.50")

    with pytest.raises(InvalidTransitionError):
        _load(scoped, lambda db: order_service.decide_replacement(db, item_ids[0], "approve", order_token=token))


def test_replacement_proposals_are_checked():
    _, scoped = _setup()
    _, _, item_ids = _place(scoped)

    with pytest.raises(OwnershipError):
        _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[0], 20))
    with pytest.raises(OwnershipError):
        _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[0], 999))
    with pytest.raises(ValidationError):
        _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[0], 10))

    _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[0], 11))
    with pytest.raises(InvalidTransitionError):
        _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[0], 12))


def test_inactive_product_cannot_be_proposed():
    _, scoped = _setup()
    _, _, item_ids = _place(scoped)

    def deactivate(db):
        db.get(Product, 11).is_active = False

    _load(scoped, deactivate)
    with pytest.raises(OwnershipError):
        _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[0], 11))


def test_decision_without_pending_proposal_is_refused():
    _, scoped = _setup()
    _, token, item_ids = _place(scoped)

    with pytest.raises(InvalidTransitionError):
        _load(scoped, lambda db: order_service.decide_replacement(db, item_ids[0], "approve", order_token=token))
    with pytest.raises(ValidationError):
        _load(scoped, lambda db: order_service.decide_replacement(db, item_ids[0], "later", order_token=token))


def test_decision_through_another_orders_token_looks_missing():
    _, scoped = _setup()
    _, _, item_ids = _place(scoped)
    _, other_token, _ = _place(scoped)
    _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[0], 11))

    with pytest.raises(NotFoundError, match="Order item not found"):
        _load(scoped, lambda db: order_service.decide_replacement(db, item_ids[0], "approve", order_token=other_token))
    with pytest.raises(NotFoundError, match="Order item not found"):
        _load(scoped, lambda db: order_service.decide_replacement(db, 999, "approve", order_token=other_token))


def test_reset_clears_any_decision_and_allows_a_new_proposal():
    plain, scoped = _setup()
    order_id, token, item_ids = _place(scoped)

    _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[1], 11))
    _load(scoped, lambda db: order_service.decide_replacement(db, item_ids[1], "reject", order_token=token))
    _load(scoped, lambda db: order_service.reset_replacement(db, item_ids[1]))

    _, items = _order(plain, order_id)
    assert items[1].replacement_decision_status == "none"
    assert items[1].pending_replacement_product_id is None
    assert items[1].replacement_decision_reason is None

    _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[1], 11))
    _, items = _order(plain, order_id)
    assert items[1].replacement_decision_status == "pending"


def test_customer_rejection_closes_pending_replacements():
    plain, scoped = _setup()
    order_id, token, item_ids = _place(scoped)
    _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[0], 11))

    _load(scoped, lambda db: order_service.reject_order(db, token, "not interested"))

    order, items = _order(plain, order_id)
    assert order.status == "rejected_by_customer"
    assert order.customer_rejection_reason == "not interested"
    assert order.customer_rejected_at is not None
    assert items[0].replacement_decision_status == "rejected"
    assert items[0].replacement_decision_reason == "not interested"
    assert items[0].pending_replacement_product_id == 11
    assert items[1].replacement_decision_status == "none"


def test_rejection_without_reason_uses_default_item_reason():
    plain, scoped = _setup()
    order_id, token, item_ids = _place(scoped)
    _load(scoped, lambda db: order_service.propose_replacement(db, item_ids[0], 11))

    _load(scoped, lambda db: order_service.reject_order(db, token, "   "))

    order, items = _order(plain, order_id)
    assert order.customer_rejection_reason is None
    assert items[0].replacement_decision_reason == "order rejected by customer"


def test_rejected_order_is_closed_for_every_change():
    _, scoped = _setup()
    order_id, token, item_ids = _place(scoped)
    _load(scoped, lambda db: order_service.reject_order(db, token))

    calls = [
        lambda db: order_service.reject_order(db, token),
        lambda db: order_service.transition_order_status(db, order_id, "confirmed"),
        lambda db: order_service.propose_replacement(db, item_ids[0], 11),
        lambda db: order_service.reset_replacement(db, item_ids[0]),
        lambda db: order_service.update_item_price(db, item_ids[0], 10),
    ]
    for call in calls:
        with pytest.raises(ConflictError):
            _load(scoped, call)


def test_rejection_after_dispatch_is_refused():
    plain, scoped = _setup()
    order_id, token, _ = _place(scoped)
    for status in ("confirmed", "out_for_delivery"):
        _load(scoped, lambda db, status=status: order_service.transition_order_status(db, order_id, status))

    with pytest.raises(InvalidTransitionError):
        _load(scoped, lambda db: order_service.reject_order(db, token, "late"))
    order, _ = _order(plain, order_id)
    assert order.status == "out_for_delivery"


def test_reason_is_trimmed_and_bounded():
    plain, scoped = _setup()
    order_id, token, _ = _place(scoped)

    with pytest.raises(ValidationError):
        _load(scoped, lambda db: order_service.reject_order(db, token, "x" * 501))
    _load(scoped, lambda db: order_service.reject_order(db, token, "  changed my mind  "))

    order, _ = _order(plain, order_id)
    assert order.customer_rejection_reason == "changed my mind"


def test_list_and_lookup_orders():
    _, scoped = _setup()
    first_id, first_token, _ = _place(scoped)
    second_id, second_token, _ = _place(scoped)
    _load(scoped, lambda db: order_service.transition_order_status(db, second_id, "confirmed"))
    _place(scoped, tenant_id=STORE_B["id"], items=[{"product_id": 20, "quantity": 1}])

    def check(db):
        assert {order.id for order in order_service.list_orders(db)} == {first_id, second_id}
        assert [order.id for order in order_service.list_orders(db, status="confirmed")] == [second_id]
        assert order_service.list_orders(db, day=date.today() + timedelta(days=2)) == []
        assert order_service.get_order_by_token(db, first_token).id == first_id
        tokens = [second_token, "unknown", first_token, first_token]
        assert {order.id for order in order_service.find_orders_by_tokens(db, tokens)} == {first_id, second_id}
        with pytest.raises(ValidationError):
            order_service.list_orders(db, status="lost")

    _load(scoped, check)
