from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from dukkan.core.config import DATABASE_URL, DB_MAX_OVERFLOW, DB_POOL_SIZE
from dukkan.core.tenant_session import TenantSession

Base = declarative_base()


def build_engine(url: str = DATABASE_URL):
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=DB_POOL_SIZE,
        max_overflow=DB_MAX_OVERFLOW,
    )


engine = build_engine()

# Unscoped sessions: tenant resolution and bootstrap only.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Every request-scoped data access goes through this factory.
TenantSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=TenantSession)
