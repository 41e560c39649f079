from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func, inspect, update
from sqlalchemy.orm import Session

from dukkan.models.customer import Customer

STATS_FIELDS = ["order_count", "completed_order_count", "first_order_at", "last_order_at"]


# Each projection is a single UPDATE evaluated by the database, so
# concurrent orders for the same customer never lose an increment.


def record_order_created(db: Session, *, tenant_id: int, customer_id: int, placed_at: datetime) -> None:
    db.execute(
        update(Customer)
        .where(Customer.id == customer_id, Customer.tenant_id == tenant_id)
        .values(
            order_count=Customer.order_count + 1,
            first_order_at=func.coalesce(Customer.first_order_at, placed_at),
            last_order_at=case(
                (Customer.last_order_at.is_(None), placed_at),
                (Customer.last_order_at < placed_at, placed_at),
                else_=Customer.last_order_at,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    _expire_stats(db, customer_id)


def record_order_completed(db: Session, *, tenant_id: int, customer_id: int) -> None:
    db.execute(
        update(Customer)
        .where(Customer.id == customer_id, Customer.tenant_id == tenant_id)
        .values(completed_order_count=Customer.completed_order_count + 1)
        .execution_options(synchronize_session=False)
    )
    _expire_stats(db, customer_id)


def _expire_stats(db: Session, customer_id: int) -> None:
    for obj in list(db.identity_map.values()):
        if isinstance(obj, Customer) and inspect(obj).identity == (customer_id,):
            db.expire(obj, STATS_FIELDS)
