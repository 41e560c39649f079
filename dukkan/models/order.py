import sqlalchemy as sa
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from dukkan.core.database import Base
from dukkan.core.tenant_session import TenantScoped


class Order(TenantScoped, Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)

    # Tracking link token, unique across all tenants
    public_token = Column(String(64), unique=True, index=True, nullable=False)

    order_type = Column(String(20), nullable=False, default="catalog")  # catalog / free_text
    status = Column(String(30), nullable=False, default="draft", index=True)
    pricing_mode = Column(String(10), nullable=False, default="auto")  # auto / manual
    subtotal = Column(Numeric(10, 2), nullable=True)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=True)
    free_text_payload = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    notes = Column(Text, nullable=True)

    # Snapshot at order time
    customer_name = Column(String(120), nullable=True)
    customer_phone = Column(String(30), nullable=True)
    delivery_address = Column(Text, nullable=True)

    customer_rejection_reason = Column(Text, nullable=True)
    customer_rejected_at = Column(DateTime(timezone=True), nullable=True)

    status_changed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
