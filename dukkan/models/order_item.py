from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from dukkan.core.database import Base
from dukkan.core.tenant_session import TenantScoped


class OrderItem(TenantScoped, Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)

    title = Column(String(200), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)
    total = Column(Numeric(10, 2), nullable=False, default=0)

    selection_mode = Column(String(20), nullable=True)  # quantity / weight / price
    selection_quantity = Column(Integer, nullable=True)
    selection_grams = Column(Integer, nullable=True)
    selection_amount = Column(Numeric(10, 2), nullable=True)
    unit_option_id = Column(String(64), nullable=True)

    # Replacement sub-state: none / pending / approved / rejected
    pending_replacement_product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    replacement_decision_status = Column(String(10), nullable=False, default="none", server_default="none")
    replacement_decision_reason = Column(Text, nullable=True)
    replacement_decided_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", foreign_keys=[product_id])
    pending_replacement_product = relationship("Product", foreign_keys=[pending_replacement_product_id])
