from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from dukkan.core.errors import ConflictError, NotFoundError, ValidationError
from dukkan.models.tenant import TENANT_STATUSES, Tenant
from dukkan.services.customers import normalize_phone
from dukkan.services.tenant_resolver import RESERVED_PUBLIC_ORDER_PATHS
from utils.slug import generate_unique_slug, normalize_slug

logger = logging.getLogger(__name__)


def create_tenant(
    db: Session,
    *,
    name: str,
    phone: str,
    slug: str | None = None,
    category: str | None = None,
) -> Tenant:
    """Register a store. Runs on an unscoped session; tenants are not tenant-scoped rows."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Store name is required")
    normalized_phone = normalize_phone(phone)
    if db.query(Tenant.id).filter(Tenant.phone == normalized_phone).first():
        raise ConflictError("A store with this phone already exists")

    if slug:
        final_slug = normalize_slug(slug)
        if not final_slug:
            raise ValidationError("Invalid slug")
        if final_slug in RESERVED_PUBLIC_ORDER_PATHS or db.query(Tenant.id).filter(Tenant.slug == final_slug).first():
            raise ConflictError("Slug already taken")
    else:
        try:
            final_slug = generate_unique_slug(
                name,
                lambda candidate: candidate in RESERVED_PUBLIC_ORDER_PATHS
                or db.query(Tenant.id).filter(Tenant.slug == candidate).first() is not None,
            )
        except ValueError:
            raise ValidationError("Cannot build a slug from the store name") from None

    tenant = Tenant(name=name, phone=normalized_phone, slug=final_slug, category=category)
    db.add(tenant)
    db.flush()
    logger.info("tenant created slug=%s", final_slug, extra={"tenant_id": tenant.id})
    return tenant


def set_tenant_status(db: Session, tenant_id: int, status: str) -> Tenant:
    if status not in TENANT_STATUSES:
        raise ValidationError(f"Invalid store status: {status}")
    tenant = db.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError("Store not found")
    tenant.status = status
    db.flush()
    return tenant
