from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dukkan.core.tenant_session import commit
from dukkan.deps import get_db, get_storefront_db
from dukkan.models.product import Product
from dukkan.services import products as product_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["products"])


class ProductCreate(BaseModel):
    name: str
    price: Decimal = Field(..., ge=0)
    sku: Optional[str] = None
    description: Optional[str] = None
    current_price: Optional[Decimal] = Field(default=None, ge=0)
    order_mode: str = "quantity"


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    current_price: Optional[Decimal] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    is_available: Optional[bool] = None


def _product_to_dict(product: Product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "sku": product.sku,
        "description": product.description,
        "price": float(product.price) if product.price is not None else None,
        "current_price": float(product.current_price) if product.current_price is not None else None,
        "effective_price": float(product.effective_price) if product.effective_price is not None else None,
        "order_mode": product.order_mode,
        "is_active": product.is_active,
        "is_available": product.is_available,
    }


@router.get("/products/public/{tenant_slug}")
def public_catalog(tenant_slug: str, db: Session = Depends(get_storefront_db)):
    return [_product_to_dict(product) for product in product_service.list_products(db, public=True)]


@router.get("/products")
def list_products(db: Session = Depends(get_db)):
    return [_product_to_dict(product) for product in product_service.list_products(db)]


@router.post("/products", status_code=201)
def create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    product = product_service.create_product(db, **payload.model_dump())
    product_id = product.id
    commit(db)
    return _product_to_dict(db.get(Product, product_id))


@router.patch("/products/{product_id}")
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    product_service.update_product(db, product_id, **payload.model_dump(exclude_unset=True))
    commit(db)
    return _product_to_dict(db.get(Product, product_id))
