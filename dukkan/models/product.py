from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text, func

from dukkan.core.database import Base
from dukkan.core.tenant_session import TenantScoped

ORDER_MODES = {"quantity", "weight", "price"}


class Product(TenantScoped, Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    sku = Column(String(64), nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    # When set, overrides price as the selling price
    current_price = Column(Numeric(10, 2), nullable=True)
    order_mode = Column(String(20), nullable=False, default="quantity")
    is_active = Column(Boolean, nullable=False, default=True)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def effective_price(self):
        return self.current_price if self.current_price is not None else self.price
