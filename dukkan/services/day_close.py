from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytz
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from dukkan.core.config import STORE_TIMEZONE
from dukkan.core.tenant_session import TenantSession
from dukkan.models.day_closure import DayClosure
from dukkan.models.order import Order
from dukkan.services import order_state
from dukkan.services.order_events import queue_day_closed

logger = logging.getLogger(__name__)

CANCELLED_STATUSES = (order_state.CANCELLED, order_state.REJECTED_BY_CUSTOMER)


def store_today(now: datetime | None = None) -> date:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(pytz.timezone(STORE_TIMEZONE)).date()


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` of ``day`` in the store's timezone, as naive datetimes."""
    zone = pytz.timezone(STORE_TIMEZONE)
    start = zone.localize(datetime.combine(day, time.min))
    end = zone.localize(datetime.combine(day + timedelta(days=1), time.min))
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def day_summary(db: TenantSession, day: date) -> dict:
    start, end = day_bounds(day)
    completed = Order.status == order_state.COMPLETED
    row = (
        db.query(
            func.count(Order.id),
            func.coalesce(func.sum(case((completed, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Order.status.in_(CANCELLED_STATUSES), 1), else_=0)), 0),
            func.coalesce(func.sum(case((completed, func.coalesce(Order.total, 0)), else_=0)), 0),
        )
        .filter(Order.created_at >= start, Order.created_at < end)
        .one()
    )
    return {
        "orders_count": int(row[0]),
        "completed_count": int(row[1]),
        "cancelled_count": int(row[2]),
        "completed_sales_total": Decimal(str(row[3])).quantize(Decimal("0.01")),
    }


def get_closure(db: TenantSession, day: date) -> DayClosure | None:
    return db.query(DayClosure).filter(DayClosure.closure_date == day).first()


def close_day(db: TenantSession, day: date | None = None) -> tuple[DayClosure, bool]:
    """Close ``day`` for the bound store.

    Returns ``(closure, already_closed)``. Closing twice returns the first
    closure unchanged; only the call that inserts it queues the summary.
    """
    day = day or store_today()
    existing = get_closure(db, day)
    if existing is not None:
        return existing, True

    summary = day_summary(db, day)
    closure = DayClosure(tenant_id=db.tenant_id, closure_date=day, **summary)
    try:
        with db.begin_nested():
            db.add(closure)
    except IntegrityError:
        logger.info("day %s closed concurrently, reusing existing closure", day)
        return db.query(DayClosure).filter(DayClosure.closure_date == day).one(), True

    queue_day_closed(db, closure)
    logger.info("day closed date=%s orders=%s", day, closure.orders_count, extra={"tenant_id": db.tenant_id})
    return closure, False
