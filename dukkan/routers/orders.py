from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from dukkan.core.tenant_session import commit
from dukkan.deps import get_db, get_optional_tracking_db, get_storefront_db, get_tracking_db
from dukkan.models.day_closure import DayClosure
from dukkan.models.order import Order
from dukkan.models.order_item import OrderItem
from dukkan.schemas.orders import (
    ItemPriceUpdate,
    OrderCreate,
    OrderRejection,
    OrderStatusUpdate,
    PublicOrderCreate,
    ReplacementDecision,
    ReplacementProposal,
)
from dukkan.services import day_close as day_close_service
from dukkan.services import orders as order_service
from dukkan.services.tenant_resolver import TenantResolver

logger = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])


def _amount(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _item_to_dict(item: OrderItem, public: bool = False) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": item.id,
        "order_id": item.order_id,
        "product_id": item.product_id,
        "title": item.title,
        "unit_price": _amount(item.unit_price),
        "quantity": item.quantity,
        "total": _amount(item.total),
        "selection_mode": item.selection_mode,
        "selection_quantity": item.selection_quantity,
        "selection_grams": item.selection_grams,
        "selection_amount": _amount(item.selection_amount),
        "unit_option_id": item.unit_option_id,
        "replacement_decision_status": item.replacement_decision_status,
        "replacement_decision_reason": item.replacement_decision_reason,
        "replacement_decided_at": item.replacement_decided_at.isoformat() if item.replacement_decided_at else None,
        "pending_replacement_product": None,
    }
    pending = item.pending_replacement_product
    if pending is not None:
        data["pending_replacement_product"] = {
            "id": pending.id,
            "name": pending.name,
            "price": _amount(pending.effective_price),
        }
    if not public:
        data["pending_replacement_product_id"] = item.pending_replacement_product_id
    return data


def _order_to_dict(order: Order, public: bool = False) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": order.id,
        "public_token": order.public_token,
        "order_type": order.order_type,
        "status": order.status,
        "pricing_mode": order.pricing_mode,
        "subtotal": _amount(order.subtotal),
        "delivery_fee": _amount(order.delivery_fee),
        "total": _amount(order.total),
        "free_text_payload": order.free_text_payload,
        "notes": order.notes,
        "customer_name": order.customer_name,
        "delivery_address": order.delivery_address,
        "customer_rejection_reason": order.customer_rejection_reason,
        "customer_rejected_at": order.customer_rejected_at.isoformat() if order.customer_rejected_at else None,
        "status_changed_at": order.status_changed_at.isoformat() if order.status_changed_at else None,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "items": [_item_to_dict(item, public=public) for item in order.items],
    }
    if not public:
        data["tenant_id"] = order.tenant_id
        data["customer_id"] = order.customer_id
        data["customer_phone"] = order.customer_phone
    return data


def _closure_to_dict(closure: DayClosure) -> Dict[str, Any]:
    return {
        "id": closure.id,
        "closure_date": closure.closure_date.isoformat(),
        "orders_count": closure.orders_count,
        "completed_count": closure.completed_count,
        "cancelled_count": closure.cancelled_count,
        "completed_sales_total": _amount(closure.completed_sales_total),
        "closed_at": closure.closed_at.isoformat() if closure.closed_at else None,
    }


# Public tracking routes are declared before /orders/{order_id}.


@router.get("/orders/tracking")
def track_orders(request: Request, db: Optional[Session] = Depends(get_optional_tracking_db)):
    if db is None:
        return []
    tokens = TenantResolver.tracking_tokens_from_query(request)
    orders = order_service.find_orders_by_tokens(db, tokens)
    return [_order_to_dict(order, public=True) for order in orders]


@router.get("/orders/tracking/{token}")
def track_order(token: str, db: Session = Depends(get_tracking_db)):
    order = order_service.get_order_by_token(db, token)
    return _order_to_dict(order, public=True)


@router.patch("/orders/tracking/{token}/items/{item_id}/replacement-decision")
def decide_item_replacement(
    token: str,
    item_id: int,
    payload: ReplacementDecision,
    db: Session = Depends(get_tracking_db),
):
    order_service.decide_replacement(db, item_id, payload.decision, payload.reason, order_token=token)
    commit(db)
    order = order_service.get_order_by_token(db, token)
    return _order_to_dict(order, public=True)


@router.patch("/orders/tracking/{token}/reject")
def reject_order(token: str, payload: OrderRejection, db: Session = Depends(get_tracking_db)):
    order_service.reject_order(db, token, payload.reason)
    commit(db)
    order = order_service.get_order_by_token(db, token)
    return _order_to_dict(order, public=True)


@router.get("/orders")
def list_orders(
    day: Optional[date] = Query(default=None),
    status: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    orders = order_service.list_orders(db, day=day, status=status)
    return [_order_to_dict(order) for order in orders]


@router.post("/orders", status_code=201)
def create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    order = order_service.create_order(
        db,
        customer_phone=payload.customer_phone,
        customer_name=payload.customer_name,
        delivery_address=payload.delivery_address,
        items=[item.model_dump() for item in payload.items],
        order_type=payload.order_type,
        delivery_fee=payload.delivery_fee,
        total=payload.total,
        free_text_payload=payload.free_text_payload,
        notes=payload.notes,
    )
    order_id = order.id
    commit(db)
    return _order_to_dict(order_service.get_order(db, order_id))


@router.get("/orders/day-close/today")
def get_day_close_status(db: Session = Depends(get_db)):
    today = day_close_service.store_today()
    closure = day_close_service.get_closure(db, today)
    preview = day_close_service.day_summary(db, today)
    preview["completed_sales_total"] = _amount(preview["completed_sales_total"])
    return {
        "date": today.isoformat(),
        "is_closed": closure is not None,
        "closure": _closure_to_dict(closure) if closure is not None else None,
        "preview": preview,
    }


@router.post("/orders/day-close")
def close_day(db: Session = Depends(get_db)):
    closure, already_closed = day_close_service.close_day(db)
    closure_date = closure.closure_date
    commit(db)
    closure = day_close_service.get_closure(db, closure_date)
    return {"closure": _closure_to_dict(closure), "is_already_closed": already_closed}


@router.post("/orders/{tenant_slug}", status_code=201)
def create_public_order(tenant_slug: str, payload: PublicOrderCreate, db: Session = Depends(get_storefront_db)):
    items: List[Dict[str, Any]] = []
    for item in payload.items:
        entry = item.model_dump()
        # catalog lines are priced by the store; anything else waits for the merchant
        entry["unit_price"] = None if item.product_id is not None else Decimal("0")
        items.append(entry)

    order = order_service.create_order(
        db,
        customer_phone=payload.customer_phone,
        customer_name=payload.customer_name,
        delivery_address=payload.delivery_address,
        items=items,
        order_type=payload.order_type,
        free_text_payload=payload.free_text_payload,
        notes=payload.notes,
    )
    token = order.public_token
    logger.info("storefront order placed via %s", tenant_slug, extra={"order_id": order.id})
    commit(db)
    return _order_to_dict(order_service.get_order_by_token(db, token), public=True)


@router.get("/orders/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db)):
    return _order_to_dict(order_service.get_order(db, order_id))


@router.patch("/orders/{order_id}/status")
def update_order_status(order_id: int, payload: OrderStatusUpdate, db: Session = Depends(get_db)):
    order_service.transition_order_status(db, order_id, payload.status)
    commit(db)
    return _order_to_dict(order_service.get_order(db, order_id))


@router.patch("/orders/items/{item_id}/replace")
def propose_item_replacement(item_id: int, payload: ReplacementProposal, db: Session = Depends(get_db)):
    item = order_service.propose_replacement(db, item_id, payload.product_id)
    order_id = item.order_id
    commit(db)
    return _order_to_dict(order_service.get_order(db, order_id))


@router.patch("/orders/items/{item_id}/replacement-reset")
def reset_item_replacement(item_id: int, db: Session = Depends(get_db)):
    item = order_service.reset_replacement(db, item_id)
    order_id = item.order_id
    commit(db)
    return _order_to_dict(order_service.get_order(db, order_id))


@router.patch("/orders/items/{item_id}/price")
def update_item_price(item_id: int, payload: ItemPriceUpdate, db: Session = Depends(get_db)):
    item = order_service.update_item_price(db, item_id, payload.unit_price)
    order_id = item.order_id
    commit(db)
    return _order_to_dict(order_service.get_order(db, order_id))
