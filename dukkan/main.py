import logging
import os
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dukkan.core.config import CORS_ORIGINS, DATABASE_URL, NOTIFICATION_WORKERS, NOTIFICATIONS_ASYNC
from dukkan.core.database import Base, engine
from dukkan.core.error_handlers import register_exception_handlers
from dukkan.core.logging_setup import configure_logging
from dukkan.core.startup_checks import (
    ensure_migrations_applied,
    ensure_row_security,
    validate_database_environment,
)
from dukkan.middleware.observability import ObservabilityMiddleware
from dukkan.middleware.tenant_context import TenantContextMiddleware
import dukkan.models  # models must be imported before create_all
import dukkan.services.event_handlers  # registers the event bus handlers

from dukkan.routers.availability_requests import router as availability_router
from dukkan.routers.customers import router as customers_router
from dukkan.routers.onboarding import router as onboarding_router
from dukkan.routers.orders import router as orders_router
from dukkan.routers.products import router as products_router
from dukkan.services.event_bus import event_bus

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    executor = None
    if NOTIFICATIONS_ASYNC:
        executor = ThreadPoolExecutor(max_workers=NOTIFICATION_WORKERS, thread_name_prefix="notifications")
        event_bus.set_executor(executor)
    try:
        yield
    finally:
        if executor is not None:
            event_bus.set_executor(None)
            executor.shutdown(wait=True)


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        else:
            ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
            ensure_row_security(engine=engine)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


app = FastAPI(
    title="Dukkan Orders API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# Observability is added last so it wraps tenant resolution.
app.add_middleware(TenantContextMiddleware)
app.add_middleware(ObservabilityMiddleware)

register_exception_handlers(app)

# Routers
app.include_router(onboarding_router)
app.include_router(products_router)
app.include_router(orders_router)
app.include_router(customers_router)
app.include_router(availability_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
