from sqlalchemy import Column, DateTime, Integer, String, func

from dukkan.core.database import Base

TENANT_ACTIVE = "active"
TENANT_STATUSES = {"active", "inactive", "suspended"}


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    phone = Column(String(30), unique=True, index=True, nullable=False)
    slug = Column(String(120), unique=True, index=True, nullable=False)
    status = Column(String(20), nullable=False, default=TENANT_ACTIVE)
    category = Column(String(40), nullable=True)
    # Last customer code handed out; only ever bumped with an atomic UPDATE
    customer_counter = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
