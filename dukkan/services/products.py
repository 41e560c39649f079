from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from dukkan.core.errors import NotFoundError, ValidationError
from dukkan.core.tenant_session import TenantSession
from dukkan.models.product import ORDER_MODES, Product

logger = logging.getLogger(__name__)


def _price(value: Any, field: str) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid {field}") from None
    if price < 0:
        raise ValidationError(f"{field} must not be negative")
    return price.quantize(Decimal("0.01"))


def list_products(db: TenantSession, *, public: bool = False) -> list[Product]:
    query = db.query(Product)
    if public:
        query = query.filter(Product.is_active.is_(True), Product.is_available.is_(True))
    return query.order_by(Product.name, Product.id).all()


def create_product(
    db: TenantSession,
    *,
    name: str,
    price: Any,
    sku: str | None = None,
    description: str | None = None,
    current_price: Any = None,
    order_mode: str = "quantity",
) -> Product:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Product name is required")
    if order_mode not in ORDER_MODES:
        raise ValidationError(f"Invalid order mode: {order_mode}")

    product = Product(
        tenant_id=db.tenant_id,
        name=name,
        sku=(sku or "").strip() or None,
        description=description,
        price=_price(price, "price"),
        current_price=_price(current_price, "current_price") if current_price is not None else None,
        order_mode=order_mode,
    )
    db.add(product)
    db.flush()
    logger.info("product created id=%s", product.id)
    return product


def update_product(db: TenantSession, product_id: int, **changes: Any) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")

    if "name" in changes and changes["name"] is not None:
        name = changes["name"].strip()
        if not name:
            raise ValidationError("Product name is required")
        product.name = name
    if "price" in changes and changes["price"] is not None:
        product.price = _price(changes["price"], "price")
    if "current_price" in changes:
        value = changes["current_price"]
        product.current_price = _price(value, "current_price") if value is not None else None
    for flag in ("is_active", "is_available"):
        if changes.get(flag) is not None:
            setattr(product, flag, bool(changes[flag]))
    db.flush()
    return product
