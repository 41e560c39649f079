from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from dukkan.core.database import Base
from dukkan.core.tenant_session import TenantScoped


class AvailabilityRequest(TenantScoped, Base):
    """A storefront visitor asking to be told when a product is back."""

    __tablename__ = "availability_requests"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "product_id",
            "visitor_key",
            "request_date",
            name="uq_availability_requests_tenant_product_visitor_date",
        ),
    )

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    visitor_key = Column(String(64), nullable=False, index=True)
    request_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    product = relationship("Product")
