from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from sqlalchemy import desc, update
from sqlalchemy.orm import selectinload

from dukkan.core.errors import ConcurrentModificationError, NotFoundError, OwnershipError, ValidationError
from dukkan.core.tenant_session import TenantSession
from dukkan.models.order import Order
from dukkan.models.order_item import OrderItem
from dukkan.models.product import ORDER_MODES, Product
from dukkan.services import order_state
from dukkan.services.customer_stats import record_order_completed, record_order_created
from dukkan.services.customers import find_or_create_customer
from dukkan.services.order_events import (
    queue_order_created,
    queue_order_status_changed,
    queue_replacement_decided,
    queue_replacement_proposed,
)

logger = logging.getLogger(__name__)

ORDER_TYPE_CATALOG = "catalog"
ORDER_TYPE_FREE_TEXT = "free_text"
ORDER_TYPES = {ORDER_TYPE_CATALOG, ORDER_TYPE_FREE_TEXT}

PRICING_AUTO = "auto"
PRICING_MANUAL = "manual"

MAX_REASON_LENGTH = 500
ORDER_REJECTED_REASON = "order rejected by customer"

_CENT = Decimal("0.01")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _money(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}") from None
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def _clean_reason(reason: str | None) -> str | None:
    cleaned = (reason or "").strip()
    if len(cleaned) > MAX_REASON_LENGTH:
        raise ValidationError(f"Reason must be at most {MAX_REASON_LENGTH} characters")
    return cleaned or None


def generate_public_token() -> str:
    return str(uuid.uuid4())


def _compare_and_set(db: TenantSession, model, row_id: int, expected: dict[str, Any], values: dict[str, Any]) -> None:
    """UPDATE the row only if it still holds ``expected``; conflict otherwise."""
    stmt = update(model).where(model.id == row_id, model.tenant_id == db.tenant_id)
    for column, value in expected.items():
        stmt = stmt.where(getattr(model, column) == value)
    result = db.execute(stmt.values(**values))
    if result.rowcount != 1:
        raise ConcurrentModificationError()


def _lock_order(db: TenantSession, order_id: int) -> Order:
    order = (
        db.query(Order)
        .filter(Order.id == order_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if order is None:
        raise NotFoundError("Order not found")
    return order


def _lock_item_with_order(db: TenantSession, item_id: int) -> tuple[Order, OrderItem]:
    item = db.query(OrderItem).filter(OrderItem.id == item_id).first()
    if item is None:
        raise NotFoundError("Order item not found")
    # order row first, then the item: every writer takes them in this order
    order = _lock_order(db, item.order_id)
    item = (
        db.query(OrderItem)
        .filter(OrderItem.id == item_id)
        .populate_existing()
        .with_for_update()
        .one()
    )
    return order, item


def _get_store_product(db: TenantSession, product_id: int | None) -> Product:
    product = db.get(Product, product_id) if product_id is not None else None
    if product is None or not product.is_active:
        raise OwnershipError("Product not found in this store")
    return product


def _recalculate_totals(order: Order) -> None:
    if order.pricing_mode != PRICING_AUTO:
        return
    subtotal = sum((Decimal(item.total or 0) for item in order.items), Decimal("0"))
    order.subtotal = subtotal.quantize(_CENT)
    order.total = (subtotal + Decimal(order.delivery_fee or 0)).quantize(_CENT)


def _build_line_item(db: TenantSession, entry: dict[str, Any]) -> OrderItem:
    try:
        quantity = entry.get("quantity")
        quantity = 1 if quantity is None else int(quantity)
    except (TypeError, ValueError):
        raise ValidationError("Invalid quantity") from None
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    product = None
    if entry.get("product_id") is not None:
        product = _get_store_product(db, entry["product_id"])

    unit_price = entry.get("unit_price")
    if unit_price is None:
        if product is None:
            raise ValidationError("unit_price is required for items without a product")
        unit_price = product.effective_price
    unit_price = _money(unit_price)

    title = (entry.get("title") or (product.name if product else "") or "").strip()
    if not title:
        raise ValidationError("Item title is required")

    selection_mode = entry.get("selection_mode")
    if selection_mode is not None and selection_mode not in ORDER_MODES:
        raise ValidationError(f"Invalid selection mode: {selection_mode}")
    selection_amount = entry.get("selection_amount")

    return OrderItem(
        tenant_id=db.tenant_id,
        product_id=product.id if product else None,
        title=title,
        unit_price=unit_price,
        quantity=quantity,
        total=(unit_price * quantity).quantize(_CENT),
        selection_mode=selection_mode,
        selection_quantity=entry.get("selection_quantity"),
        selection_grams=entry.get("selection_grams"),
        selection_amount=_money(selection_amount) if selection_amount is not None else None,
        unit_option_id=entry.get("unit_option_id"),
        replacement_decision_status=order_state.REPLACEMENT_NONE,
    )


def create_order(
    db: TenantSession,
    *,
    customer_phone: str,
    customer_name: str | None = None,
    delivery_address: str | None = None,
    items: Iterable[dict[str, Any]] | None = None,
    order_type: str = ORDER_TYPE_CATALOG,
    delivery_fee: Any = None,
    total: Any = None,
    free_text_payload: dict[str, Any] | None = None,
    notes: str | None = None,
) -> Order:
    """Create a draft order for the current tenant.

    The customer is found or created by phone. With ``total`` given the order
    is manually priced; otherwise total is the item subtotal plus the
    delivery fee.
    """
    if order_type not in ORDER_TYPES:
        raise ValidationError(f"Invalid order type: {order_type}")
    entries = list(items or [])
    if order_type == ORDER_TYPE_CATALOG and not entries:
        raise ValidationError("Catalog orders need at least one item")
    if order_type == ORDER_TYPE_FREE_TEXT and not (entries or free_text_payload or (notes or "").strip()):
        raise ValidationError("Free text orders need a description")

    customer = find_or_create_customer(
        db,
        phone=customer_phone,
        name=customer_name,
        address=delivery_address,
    )
    line_items = [_build_line_item(db, entry) for entry in entries]

    subtotal = sum((item.total for item in line_items), Decimal("0")).quantize(_CENT)
    fee = _money(delivery_fee or 0)
    if total is not None:
        pricing_mode = PRICING_MANUAL
        order_total = _money(total)
    else:
        pricing_mode = PRICING_AUTO
        order_total = (subtotal + fee).quantize(_CENT)

    placed_at = _now()
    order = Order(
        tenant_id=db.tenant_id,
        customer_id=customer.id,
        public_token=generate_public_token(),
        order_type=order_type,
        status=order_state.DRAFT,
        pricing_mode=pricing_mode,
        subtotal=subtotal,
        delivery_fee=fee,
        total=order_total,
        free_text_payload=free_text_payload,
        notes=(notes or "").strip() or None,
        customer_name=(customer_name or "").strip() or customer.name,
        customer_phone=customer.phone,
        delivery_address=(delivery_address or "").strip() or customer.address,
        status_changed_at=placed_at,
    )
    order.items = line_items
    db.add(order)
    db.flush()

    record_order_created(db, tenant_id=db.tenant_id, customer_id=customer.id, placed_at=placed_at)
    queue_order_created(db, order)
    logger.info("order created", extra={"order_id": order.id})
    return order


def transition_order_status(db: TenantSession, order_id: int, target: str) -> Order:
    order = _lock_order(db, order_id)
    previous = order.status
    order_state.assert_can_transition(previous, target)

    _compare_and_set(
        db,
        Order,
        order.id,
        {"status": previous},
        {"status": target, "status_changed_at": _now()},
    )
    if target == order_state.COMPLETED:
        record_order_completed(db, tenant_id=db.tenant_id, customer_id=order.customer_id)

    queue_order_status_changed(db, order, previous)
    logger.info("order status changed %s -> %s", previous, target, extra={"order_id": order.id})
    return order


def reject_order(db: TenantSession, order_token: str, reason: str | None = None) -> Order:
    """Customer rejects the whole order through the tracking link.

    Pending replacement proposals on its items are closed as rejected.
    """
    reason = _clean_reason(reason)
    order = (
        db.query(Order)
        .filter(Order.public_token == order_token)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if order is None:
        raise NotFoundError("Order not found")
    previous = order.status
    order_state.assert_customer_can_reject(previous)

    now = _now()
    _compare_and_set(
        db,
        Order,
        order.id,
        {"status": previous},
        {
            "status": order_state.REJECTED_BY_CUSTOMER,
            "customer_rejection_reason": reason,
            "customer_rejected_at": now,
            "status_changed_at": now,
        },
    )
    db.execute(
        update(OrderItem)
        .where(
            OrderItem.order_id == order.id,
            OrderItem.tenant_id == db.tenant_id,
            OrderItem.replacement_decision_status == order_state.REPLACEMENT_PENDING,
        )
        .values(
            replacement_decision_status=order_state.REPLACEMENT_REJECTED,
            replacement_decision_reason=reason or ORDER_REJECTED_REASON,
            replacement_decided_at=now,
        )
    )

    queue_order_status_changed(db, order, previous, reason=reason)
    logger.info("order rejected by customer", extra={"order_id": order.id})
    return order


def propose_replacement(db: TenantSession, item_id: int, product_id: int) -> OrderItem:
    order, item = _lock_item_with_order(db, item_id)
    order_state.assert_order_open_for_replacement(order.status)
    order_state.assert_can_transition_replacement(
        item.replacement_decision_status, order_state.REPLACEMENT_PENDING
    )
    product = _get_store_product(db, product_id)
    if product.id == item.product_id:
        raise ValidationError("Replacement must be a different product")

    _compare_and_set(
        db,
        OrderItem,
        item.id,
        {"replacement_decision_status": order_state.REPLACEMENT_NONE},
        {
            "pending_replacement_product_id": product.id,
            "replacement_decision_status": order_state.REPLACEMENT_PENDING,
            "replacement_decision_reason": None,
            "replacement_decided_at": None,
        },
    )
    queue_replacement_proposed(db, order, item, product.name)
    logger.info("replacement proposed", extra={"order_id": order.id})
    return item


def decide_replacement(
    db: TenantSession,
    item_id: int,
    decision: str,
    reason: str | None = None,
    *,
    order_token: str | None = None,
) -> OrderItem:
    """Record the customer's answer to a pending replacement.

    When ``order_token`` is given the item must belong to that order; a
    mismatch looks exactly like a missing item.
    """
    target = order_state.decision_target(decision)
    reason = _clean_reason(reason)
    order, item = _lock_item_with_order(db, item_id)
    if order_token is not None and order.public_token != order_token:
        raise NotFoundError("Order item not found")
    order_state.assert_order_open_for_replacement(order.status)
    order_state.assert_can_transition_replacement(item.replacement_decision_status, target)

    replacement = None
    if item.pending_replacement_product_id is not None:
        replacement = db.get(Product, item.pending_replacement_product_id)
    original_title = item.title
    now = _now()

    if target == order_state.REPLACEMENT_APPROVED:
        if replacement is None or not replacement.is_active:
            raise OwnershipError("Replacement product is no longer available")
        unit_price = _money(replacement.effective_price)
        values = {
            "product_id": replacement.id,
            "title": replacement.name,
            "unit_price": unit_price,
            "total": (unit_price * item.quantity).quantize(_CENT),
            "pending_replacement_product_id": None,
            "replacement_decision_status": target,
            "replacement_decision_reason": reason,
            "replacement_decided_at": now,
        }
    else:
        # the pending product id stays as the record of what was declined
        values = {
            "replacement_decision_status": target,
            "replacement_decision_reason": reason,
            "replacement_decided_at": now,
        }

    _compare_and_set(
        db,
        OrderItem,
        item.id,
        {"replacement_decision_status": order_state.REPLACEMENT_PENDING},
        values,
    )
    if target == order_state.REPLACEMENT_APPROVED:
        _recalculate_totals(order)
        db.flush()

    queue_replacement_decided(
        db,
        order,
        item,
        original_title=original_title,
        replacement_title=replacement.name if replacement is not None else "",
    )
    logger.info("replacement %s", target, extra={"order_id": order.id})
    return item


def reset_replacement(db: TenantSession, item_id: int) -> OrderItem:
    order, item = _lock_item_with_order(db, item_id)
    order_state.assert_order_open_for_replacement(order.status)
    _compare_and_set(
        db,
        OrderItem,
        item.id,
        {"replacement_decision_status": item.replacement_decision_status},
        {
            "pending_replacement_product_id": None,
            "replacement_decision_status": order_state.REPLACEMENT_NONE,
            "replacement_decision_reason": None,
            "replacement_decided_at": None,
        },
    )
    return item


def update_item_price(db: TenantSession, item_id: int, unit_price: Any) -> OrderItem:
    order, item = _lock_item_with_order(db, item_id)
    order_state.assert_order_open_for_replacement(order.status)
    price = _money(unit_price)
    item.unit_price = price
    item.total = (price * item.quantity).quantize(_CENT)
    _recalculate_totals(order)
    db.flush()
    return item


def get_order(db: TenantSession, order_id: int) -> Order:
    order = (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.id == order_id)
        .first()
    )
    if order is None:
        raise NotFoundError("Order not found")
    return order


def get_order_by_token(db: TenantSession, token: str) -> Order:
    order = (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.public_token == token)
        .first()
    )
    if order is None:
        raise NotFoundError("Order not found")
    return order


def find_orders_by_tokens(db: TenantSession, tokens: Iterable[str]) -> list[Order]:
    unique_tokens = sorted({token.strip() for token in tokens if token and token.strip()})
    if not unique_tokens:
        return []
    return (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.public_token.in_(unique_tokens))
        .order_by(desc(Order.created_at), desc(Order.id))
        .all()
    )


def list_orders(db: TenantSession, *, day: date | None = None, status: str | None = None) -> list[Order]:
    query = db.query(Order).options(selectinload(Order.items))
    if day is not None:
        start = datetime.combine(day, time.min)
        query = query.filter(Order.created_at >= start, Order.created_at < start + timedelta(days=1))
    if status is not None:
        if status not in order_state.ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {status}")
        query = query.filter(Order.status == status)
    return query.order_by(desc(Order.created_at), desc(Order.id)).all()
