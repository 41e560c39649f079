from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping

from dukkan.core.config import APP_URL
from dukkan.services.whatsapp_templates import TEMPLATES
from dukkan.whatsapp.base import WhatsAppSendResult
from dukkan.whatsapp.service import whatsapp_service

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "عميلنا"
NO_REASON = "بدون سبب"


def format_amount(value: Any) -> str:
    if value is None or value == "":
        return "-"
    amount = Decimal(str(value)).quantize(Decimal("0.01"))
    if amount == amount.to_integral_value():
        return f"{int(amount):,}"
    return f"{amount:,.2f}"


def build_tracking_url(public_token: str) -> str:
    return f"{APP_URL}/track-order/{public_token}"


def render_template(template: str, variables: Mapping[str, Any]) -> str:
    if template not in TEMPLATES:
        raise KeyError(f"Unknown template: {template}")
    return TEMPLATES[template].format(**variables)


def send_whatsapp_message(
    *,
    tenant_id: int,
    phone: str | None,
    template: str,
    variables: Mapping[str, Any],
    order_id: int | None = None,
) -> WhatsAppSendResult | None:
    if not phone:
        logger.info("WhatsApp outbound skipped (no phone) template=%s", template, extra={"order_id": order_id})
        return None

    variables_payload = dict(variables)
    variables_payload.setdefault("customer_name", DEFAULT_CUSTOMER_NAME)
    variables_payload["customer_name"] = variables_payload["customer_name"] or DEFAULT_CUSTOMER_NAME
    variables_payload.setdefault("reason", NO_REASON)
    variables_payload["reason"] = variables_payload["reason"] or NO_REASON

    message_text = render_template(template, variables_payload)
    result = whatsapp_service.provider.send_text(
        tenant_id=tenant_id,
        to_phone=phone,
        text=message_text,
        context={"template": template, "order_id": order_id},
    )
    if not result.ok:
        logger.warning(
            "WhatsApp outbound failed template=%s error=%s",
            template,
            result.error,
            extra={"tenant_id": tenant_id, "order_id": order_id},
        )
    return result
