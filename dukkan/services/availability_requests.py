from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError

from dukkan.core.errors import NotFoundError, ValidationError
from dukkan.core.tenant_session import TenantSession
from dukkan.models.availability_request import AvailabilityRequest
from dukkan.models.product import Product
from dukkan.services.day_close import store_today

logger = logging.getLogger(__name__)

STATUS_CREATED = "created"
STATUS_ALREADY_REQUESTED = "already_requested_today"

MAX_SUMMARY_DAYS = 30
MAX_SUMMARY_PRODUCTS = 20


def request_availability(db: TenantSession, product_id: int, visitor_key: str) -> dict[str, Any]:
    """Record that a visitor wants an unavailable product, at most once per visitor per day."""
    visitor_key = (visitor_key or "").strip()
    if not visitor_key:
        raise ValidationError("visitor_key is required")

    product = db.get(Product, product_id)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found")
    if product.is_available:
        raise ValidationError("Product is currently available")

    today = store_today()
    request = AvailabilityRequest(
        tenant_id=db.tenant_id,
        product_id=product.id,
        visitor_key=visitor_key,
        request_date=today,
    )
    try:
        with db.begin_nested():
            db.add(request)
    except IntegrityError:
        existing = (
            db.query(AvailabilityRequest)
            .filter(
                AvailabilityRequest.product_id == product.id,
                AvailabilityRequest.visitor_key == visitor_key,
                AvailabilityRequest.request_date == today,
            )
            .one()
        )
        return {"status": STATUS_ALREADY_REQUESTED, "requested_at": existing.created_at, "product_id": product.id}

    db.refresh(request, ["created_at"])
    logger.info("availability requested product_id=%s", product.id, extra={"tenant_id": db.tenant_id})
    return {"status": STATUS_CREATED, "requested_at": request.created_at, "product_id": product.id}


def merchant_summary(db: TenantSession, *, days: int = 1, limit: int = 5) -> dict[str, Any]:
    """Today's request count and the most requested products over the last ``days`` days."""
    days = min(MAX_SUMMARY_DAYS, max(1, int(days)))
    limit = min(MAX_SUMMARY_PRODUCTS, max(1, int(limit)))
    today = store_today()
    since = today - timedelta(days=days - 1)

    today_total = (
        db.query(func.count(AvailabilityRequest.id)).filter(AvailabilityRequest.request_date == today).scalar()
    )

    requests_count = func.count(AvailabilityRequest.id).label("requests_count")
    last_requested_at = func.max(AvailabilityRequest.created_at).label("last_requested_at")
    rows = (
        db.query(AvailabilityRequest.product_id, Product.name, requests_count, last_requested_at)
        .join(Product, Product.id == AvailabilityRequest.product_id)
        .filter(AvailabilityRequest.request_date >= since, AvailabilityRequest.request_date <= today)
        .group_by(AvailabilityRequest.product_id, Product.name)
        .order_by(desc(requests_count), desc(last_requested_at))
        .limit(limit)
        .all()
    )
    return {
        "today_total_requests": int(today_total or 0),
        "top_products": [
            {
                "product_id": product_id,
                "product_name": name,
                "requests_count": int(count),
                "last_requested_at": last,
            }
            for product_id, name, count, last in rows
        ],
    }
