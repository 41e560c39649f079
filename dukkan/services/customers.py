from __future__ import annotations

import logging
import re

from sqlalchemy import desc, or_, update
from sqlalchemy.exc import IntegrityError

from dukkan.core.errors import NotFoundError, ValidationError
from dukkan.core.tenant_session import TenantSession
from dukkan.models.customer import Customer
from dukkan.models.tenant import Tenant

logger = logging.getLogger(__name__)

_tenants = Tenant.__table__


def normalize_phone(phone: str | None) -> str:
    """Normalize to E.164, assuming Egyptian numbers when no country code is given."""
    cleaned = re.sub(r"[^\d+]", "", phone or "")
    if len(cleaned.lstrip("+")) < 6:
        raise ValidationError("Invalid phone number")
    if cleaned.startswith("+20"):
        return cleaned
    if cleaned.startswith("20") and len(cleaned) >= 12:
        return f"+{cleaned}"
    if cleaned.startswith("01") and len(cleaned) == 11:
        return f"+20{cleaned[1:]}"
    return cleaned


def _next_customer_code(db: TenantSession) -> int:
    code = db.execute(
        update(_tenants)
        .where(_tenants.c.id == db.tenant_id)
        .values(customer_counter=_tenants.c.customer_counter + 1)
        .returning(_tenants.c.customer_counter)
    ).scalar_one_or_none()
    if code is None:
        raise NotFoundError("Store not found")
    return code


def get_customer_by_phone(db: TenantSession, phone: str) -> Customer | None:
    return db.query(Customer).filter(Customer.phone == normalize_phone(phone)).first()


def find_or_create_customer(
    db: TenantSession,
    *,
    phone: str,
    name: str | None = None,
    address: str | None = None,
) -> Customer:
    """Return the tenant's customer for ``phone``, creating it if needed.

    A new customer takes the next per-tenant ``code``. Two requests creating
    the same phone at once both end up with the row that won the insert.
    """
    normalized = normalize_phone(phone)
    customer = db.query(Customer).filter(Customer.phone == normalized).first()
    if customer is not None:
        return customer

    # The counter bump is not rolled back with the savepoint; a lost race
    # leaves a gap in the codes, never a duplicate.
    code = _next_customer_code(db)
    customer = Customer(
        tenant_id=db.tenant_id,
        code=code,
        phone=normalized,
        name=(name or "").strip() or None,
        address=(address or "").strip() or None,
    )
    try:
        with db.begin_nested():
            db.add(customer)
    except IntegrityError:
        logger.info("customer created concurrently, reusing existing row")
        customer = db.query(Customer).filter(Customer.phone == normalized).one()
    return customer


MAX_LABEL_LENGTH = 60
MAX_PAGE_SIZE = 100


def list_customers(
    db: TenantSession,
    *,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Customer], int]:
    """One page of the store's customers, most recent buyers first, with the total count."""
    if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}")

    query = db.query(Customer)
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        filters = [Customer.name.ilike(pattern), Customer.phone.like(pattern)]
        if term.isdigit():
            filters.append(Customer.code == int(term))
        query = query.filter(or_(*filters))

    total = query.count()
    customers = (
        query.order_by(desc(Customer.last_order_at).nulls_last(), desc(Customer.id))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return customers, total


def get_customer(db: TenantSession, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def label_customer(
    db: TenantSession,
    customer_id: int,
    *,
    label: str | None,
    notes: str | None = None,
) -> Customer:
    """Set the merchant's private label (and optionally notes); a blank label clears it."""
    customer = get_customer(db, customer_id)
    cleaned = (label or "").strip()
    if len(cleaned) > MAX_LABEL_LENGTH:
        raise ValidationError(f"Label must be at most {MAX_LABEL_LENGTH} characters")
    customer.merchant_label = cleaned or None
    if notes is not None:
        customer.notes = notes.strip() or None
    db.flush()
    return customer
