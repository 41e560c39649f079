from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dukkan.core.tenant_session import commit
from dukkan.deps import get_db, get_storefront_db
from dukkan.services import availability_requests as availability_service

router = APIRouter(prefix="/availability-requests", tags=["availability-requests"])


class AvailabilityRequestCreate(BaseModel):
    product_id: int = Field(..., ge=1)
    visitor_key: str = Field(..., min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9_-]+$")


def _timestamp(value: Any) -> str | None:
    return value.isoformat() if isinstance(value, datetime) else value


@router.post("/public/{tenant_slug}", status_code=201)
def request_availability(
    tenant_slug: str,
    payload: AvailabilityRequestCreate,
    db: Session = Depends(get_storefront_db),
):
    result = availability_service.request_availability(db, payload.product_id, payload.visitor_key)
    commit(db)
    result["requested_at"] = _timestamp(result["requested_at"])
    return result


@router.get("/merchant/summary")
def merchant_summary(
    days: int = Query(default=1, ge=1, le=availability_service.MAX_SUMMARY_DAYS),
    limit: int = Query(default=5, ge=1, le=availability_service.MAX_SUMMARY_PRODUCTS),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    summary = availability_service.merchant_summary(db, days=days, limit=limit)
    for product in summary["top_products"]:
        product["last_requested_at"] = _timestamp(product["last_requested_at"])
    return summary
