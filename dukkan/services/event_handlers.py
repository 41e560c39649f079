from __future__ import annotations

from dukkan.services import order_state
from dukkan.services.event_bus import event_bus
from dukkan.services.order_events import (
    DAY_CLOSED,
    ORDER_CREATED,
    ORDER_STATUS_CHANGED,
    REPLACEMENT_DECIDED,
    REPLACEMENT_PROPOSED,
)
from dukkan.services.whatsapp_outbound import build_tracking_url, format_amount, send_whatsapp_message

_CUSTOMER_STATUS_TEMPLATES = {
    order_state.CONFIRMED: "order_status_confirmed",
    order_state.OUT_FOR_DELIVERY: "order_out_for_delivery",
    order_state.COMPLETED: "order_delivered",
    order_state.CANCELLED: "order_cancelled",
}


def _common_variables(payload: dict) -> dict:
    return {
        "customer_name": payload.get("customer_name"),
        "order_number": payload["order_id"],
        "store_name": payload.get("store_name") or "",
        "tracking_url": build_tracking_url(payload["public_token"]),
    }


def handle_order_created(payload: dict) -> None:
    variables = _common_variables(payload)
    variables["order_total"] = format_amount(payload.get("total"))
    variables["items"] = "\n".join(f"- {item['title']} ×{item['quantity']}" for item in payload.get("items") or [])

    send_whatsapp_message(
        tenant_id=payload["tenant_id"],
        phone=payload.get("store_phone"),
        template="new_order_seller",
        variables=variables,
        order_id=payload["order_id"],
    )
    send_whatsapp_message(
        tenant_id=payload["tenant_id"],
        phone=payload.get("customer_phone"),
        template="order_confirmed",
        variables=variables,
        order_id=payload["order_id"],
    )


def handle_order_status_changed(payload: dict) -> None:
    status = payload.get("status")
    variables = _common_variables(payload)
    variables["reason"] = payload.get("reason")

    if status == order_state.REJECTED_BY_CUSTOMER:
        send_whatsapp_message(
            tenant_id=payload["tenant_id"],
            phone=payload.get("store_phone"),
            template="merchant_order_rejected",
            variables=variables,
            order_id=payload["order_id"],
        )
        return

    template = _CUSTOMER_STATUS_TEMPLATES.get(status)
    if not template:
        return
    send_whatsapp_message(
        tenant_id=payload["tenant_id"],
        phone=payload.get("customer_phone"),
        template=template,
        variables=variables,
        order_id=payload["order_id"],
    )


def handle_replacement_proposed(payload: dict) -> None:
    variables = _common_variables(payload)
    variables.update(
        original_title=payload["original_title"],
        replacement_title=payload["replacement_title"],
        order_total=format_amount(payload.get("order_total")),
    )
    send_whatsapp_message(
        tenant_id=payload["tenant_id"],
        phone=payload.get("customer_phone"),
        template="order_product_replacement",
        variables=variables,
        order_id=payload["order_id"],
    )


def handle_replacement_decided(payload: dict) -> None:
    if payload["decision"] == order_state.REPLACEMENT_APPROVED:
        template = "merchant_replacement_accepted"
    else:
        template = "merchant_replacement_rejected"
    variables = _common_variables(payload)
    variables.update(
        original_title=payload["original_title"],
        replacement_title=payload["replacement_title"],
        reason=payload.get("reason"),
    )
    send_whatsapp_message(
        tenant_id=payload["tenant_id"],
        phone=payload.get("store_phone"),
        template=template,
        variables=variables,
        order_id=payload["order_id"],
    )


def handle_day_closed(payload: dict) -> None:
    send_whatsapp_message(
        tenant_id=payload["tenant_id"],
        phone=payload.get("store_phone"),
        template="merchant_day_closure_summary",
        variables={
            "store_name": payload.get("store_name") or "",
            "closure_date": payload["closure_date"],
            "orders_count": payload["orders_count"],
            "completed_count": payload["completed_count"],
            "cancelled_count": payload["cancelled_count"],
            "completed_sales_total": format_amount(payload.get("completed_sales_total")),
        },
    )


def register_handlers(bus=event_bus) -> None:
    bus.subscribe(ORDER_CREATED, handle_order_created)
    bus.subscribe(ORDER_STATUS_CHANGED, handle_order_status_changed)
    bus.subscribe(REPLACEMENT_PROPOSED, handle_replacement_proposed)
    bus.subscribe(REPLACEMENT_DECIDED, handle_replacement_decided)
    bus.subscribe(DAY_CLOSED, handle_day_closed)


register_handlers()
