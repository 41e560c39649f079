from sqlalchemy import Column, Date, DateTime, Integer, Numeric, UniqueConstraint, func

from dukkan.core.database import Base
from dukkan.core.tenant_session import TenantScoped


class DayClosure(TenantScoped, Base):
    __tablename__ = "day_closures"
    __table_args__ = (UniqueConstraint("tenant_id", "closure_date", name="uq_day_closures_tenant_date"),)

    id = Column(Integer, primary_key=True)
    closure_date = Column(Date, nullable=False)
    orders_count = Column(Integer, nullable=False, default=0)
    completed_count = Column(Integer, nullable=False, default=0)
    cancelled_count = Column(Integer, nullable=False, default=0)
    completed_sales_total = Column(Numeric(10, 2), nullable=False, default=0)
    closed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
