from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dukkan.core.tenant_session import commit
from dukkan.deps import get_db
from dukkan.models.customer import Customer
from dukkan.services import customers as customer_service

router = APIRouter(prefix="/customers", tags=["customers"])


class CustomerLabel(BaseModel):
    label: Optional[str] = Field(default=None, max_length=customer_service.MAX_LABEL_LENGTH)
    notes: Optional[str] = None


def _customer_to_dict(customer: Customer) -> Dict[str, Any]:
    return {
        "id": customer.id,
        "code": customer.code,
        "name": customer.name,
        "phone": customer.phone,
        "address": customer.address,
        "notes": customer.notes,
        "merchant_label": customer.merchant_label,
        "order_count": customer.order_count,
        "completed_order_count": customer.completed_order_count,
        "first_order_at": customer.first_order_at.isoformat() if customer.first_order_at else None,
        "last_order_at": customer.last_order_at.isoformat() if customer.last_order_at else None,
        "created_at": customer.created_at.isoformat() if customer.created_at else None,
    }


@router.get("")
def list_customers(
    search: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=customer_service.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    customers, total = customer_service.list_customers(db, search=search, page=page, limit=limit)
    return {
        "items": [_customer_to_dict(customer) for customer in customers],
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.get("/{customer_id}")
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    return _customer_to_dict(customer_service.get_customer(db, customer_id))


@router.post("/{customer_id}/label")
def label_customer(customer_id: int, payload: CustomerLabel, db: Session = Depends(get_db)):
    customer_service.label_customer(db, customer_id, label=payload.label, notes=payload.notes)
    commit(db)
    return _customer_to_dict(customer_service.get_customer(db, customer_id))
