from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any

from dukkan.core.tenant_session import TenantSession
from dukkan.models.day_closure import DayClosure
from dukkan.models.order import Order
from dukkan.models.order_item import OrderItem
from dukkan.models.tenant import Tenant

ORDER_CREATED = "order.created"
ORDER_STATUS_CHANGED = "order.status.changed"
REPLACEMENT_PROPOSED = "order.replacement.proposed"
REPLACEMENT_DECIDED = "order.replacement.decided"
DAY_CLOSED = "store.day.closed"


@dataclass
class OrderCreated:
    order_id: int
    tenant_id: int
    public_token: str
    customer_id: int
    customer_name: str | None
    customer_phone: str | None
    store_name: str | None
    store_phone: str | None
    total: Decimal | None
    items: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class OrderStatusChanged:
    order_id: int
    tenant_id: int
    public_token: str
    previous_status: str
    status: str
    customer_name: str | None
    customer_phone: str | None
    store_name: str | None
    store_phone: str | None
    reason: str | None = None


@dataclass
class ReplacementProposed:
    order_id: int
    tenant_id: int
    item_id: int
    public_token: str
    customer_name: str | None
    customer_phone: str | None
    store_name: str | None
    store_phone: str | None
    original_title: str
    replacement_title: str
    order_total: Decimal | None


@dataclass
class ReplacementDecided:
    order_id: int
    tenant_id: int
    item_id: int
    public_token: str
    decision: str
    reason: str | None
    customer_name: str | None
    customer_phone: str | None
    store_name: str | None
    store_phone: str | None
    original_title: str
    replacement_title: str


@dataclass
class DayClosed:
    tenant_id: int
    store_name: str | None
    store_phone: str | None
    closure_date: str
    orders_count: int
    completed_count: int
    cancelled_count: int
    completed_sales_total: Decimal


def _base_fields(db: TenantSession, order: Order) -> dict[str, Any]:
    tenant = db.get(Tenant, order.tenant_id)
    return {
        "order_id": order.id,
        "tenant_id": order.tenant_id,
        "public_token": order.public_token,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "store_name": tenant.name if tenant is not None else None,
        "store_phone": tenant.phone if tenant is not None else None,
    }


def queue_order_created(db: TenantSession, order: Order) -> None:
    event = OrderCreated(
        customer_id=order.customer_id,
        total=order.total,
        items=[{"title": item.title, "quantity": item.quantity} for item in order.items],
        **_base_fields(db, order),
    )
    db.queue_event(ORDER_CREATED, asdict(event))


def queue_order_status_changed(
    db: TenantSession, order: Order, previous_status: str, reason: str | None = None
) -> None:
    if previous_status == order.status:
        return
    event = OrderStatusChanged(
        previous_status=previous_status,
        status=order.status,
        reason=reason,
        **_base_fields(db, order),
    )
    db.queue_event(ORDER_STATUS_CHANGED, asdict(event))


def queue_replacement_proposed(
    db: TenantSession, order: Order, item: OrderItem, replacement_title: str
) -> None:
    event = ReplacementProposed(
        item_id=item.id,
        original_title=item.title,
        replacement_title=replacement_title,
        order_total=order.total,
        **_base_fields(db, order),
    )
    db.queue_event(REPLACEMENT_PROPOSED, asdict(event))


def queue_replacement_decided(
    db: TenantSession,
    order: Order,
    item: OrderItem,
    *,
    original_title: str,
    replacement_title: str,
) -> None:
    event = ReplacementDecided(
        item_id=item.id,
        decision=item.replacement_decision_status,
        reason=item.replacement_decision_reason,
        original_title=original_title,
        replacement_title=replacement_title,
        **_base_fields(db, order),
    )
    db.queue_event(REPLACEMENT_DECIDED, asdict(event))


def queue_day_closed(db: TenantSession, closure: DayClosure) -> None:
    tenant = db.get(Tenant, closure.tenant_id)
    event = DayClosed(
        tenant_id=closure.tenant_id,
        store_name=tenant.name if tenant is not None else None,
        store_phone=tenant.phone if tenant is not None else None,
        closure_date=closure.closure_date.isoformat(),
        orders_count=closure.orders_count,
        completed_count=closure.completed_count,
        cancelled_count=closure.cancelled_count,
        completed_sales_total=closure.completed_sales_total,
    )
    db.queue_event(DAY_CLOSED, asdict(event))
