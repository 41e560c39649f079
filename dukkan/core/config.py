import os
from dotenv import load_dotenv

# Loads the .env at the project root
load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./dukkan.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Public tracking links sent to customers
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")

# Tenant resolution. X-Tenant-ID is honoured only on internal calls that
# also carry X-Internal-Token matching INTERNAL_API_TOKEN.
ALLOW_TENANT_HEADER = _flag("ALLOW_TENANT_HEADER", "0")
INTERNAL_API_TOKEN = os.getenv("INTERNAL_API_TOKEN", "")

# Per-transaction statement timeout (PostgreSQL only, 0 disables)
DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "0"))
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))

# Notifications
NOTIFICATIONS_PROVIDER = os.getenv("NOTIFICATIONS_PROVIDER", "mock").strip().lower()
NOTIFICATIONS_ASYNC = _flag("NOTIFICATIONS_ASYNC", "0" if IS_DEV else "1")
NOTIFICATION_WORKERS = int(os.getenv("NOTIFICATION_WORKERS", "4"))

META_WA_ACCESS_TOKEN = os.getenv("META_WA_ACCESS_TOKEN", "")
META_WA_PHONE_NUMBER_ID = os.getenv("META_WA_PHONE_NUMBER_ID", "")
META_API_VERSION = os.getenv("META_API_VERSION", "v19.0")

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

# Auth (JWT)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))

# Store onboarding (required in production)
ONBOARDING_API_TOKEN = os.getenv("ONBOARDING_API_TOKEN", "")

# Business day boundaries for the day close
STORE_TIMEZONE = os.getenv("STORE_TIMEZONE", "Africa/Cairo")
