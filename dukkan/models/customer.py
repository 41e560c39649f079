from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from dukkan.core.database import Base
from dukkan.core.tenant_session import TenantScoped


class Customer(TenantScoped, Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "phone", name="uq_customers_tenant_phone"),
        UniqueConstraint("tenant_id", "code", name="uq_customers_tenant_code"),
    )

    id = Column(Integer, primary_key=True)
    code = Column(Integer, nullable=False)
    name = Column(String(120), nullable=True)
    phone = Column(String(30), nullable=False, index=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    merchant_label = Column(String(60), nullable=True)

    # Maintained by services.customer_stats only
    order_count = Column(Integer, nullable=False, default=0, server_default="0")
    completed_order_count = Column(Integer, nullable=False, default=0, server_default="0")
    first_order_at = Column(DateTime(timezone=True), nullable=True)
    last_order_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    orders = relationship("Order", back_populates="customer")
