from __future__ import annotations

import logging

from sqlalchemy.exc import DBAPIError, IntegrityError

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE codes
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
INSUFFICIENT_PRIVILEGE = "42501"
RAISE_EXCEPTION = "P0001"
QUERY_CANCELED = "57014"


class DomainError(Exception):
    """Base for every error the order and tenancy layers raise on purpose.

    ``code`` is stable and safe to show to API clients, ``detail`` is a
    human readable message.
    """

    code = "domain_error"
    default_detail = "Domain error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class TenantContextMissingError(DomainError):
    code = "tenant_context_missing"
    default_detail = "Tenant context is required"


class ConflictError(DomainError):
    code = "conflict"
    default_detail = "Conflict"


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"
    default_detail = "Invalid status transition"


class ConcurrentModificationError(ConflictError):
    code = "concurrent_modification"
    default_detail = "The record was modified by another request"


class OwnershipError(ConflictError):
    code = "ownership"
    default_detail = "Referenced record does not belong to this store"


class TenantIsolationError(ConflictError):
    code = "tenant_isolation"
    default_detail = "Row belongs to another tenant"


class AuthenticationError(DomainError):
    code = "unauthorized"
    default_detail = "Authentication required"


class NotFoundError(DomainError):
    code = "not_found"
    default_detail = "Not found"


class ValidationError(DomainError):
    code = "invalid_request"
    default_detail = "Invalid request"


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    # psycopg exposes ``sqlstate``, psycopg2 ``pgcode``
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def translate_db_error(exc: DBAPIError) -> DomainError | None:
    """Map a storage error onto the domain taxonomy.

    Returns ``None`` when the error has no domain meaning; the caller
    re-raises the original exception in that case.
    """
    code = _sqlstate(exc)
    message = str(getattr(exc, "orig", exc) or "")

    if code == UNIQUE_VIOLATION:
        return ConflictError("Duplicate value")
    if code == FOREIGN_KEY_VIOLATION:
        return OwnershipError()
    if code == INSUFFICIENT_PRIVILEGE or "row-level security" in message:
        return TenantIsolationError()
    if code == RAISE_EXCEPTION and "app.tenant_id is not set" in message:
        return TenantContextMissingError()

    if code is None and isinstance(exc, IntegrityError):
        # sqlite
        if "UNIQUE constraint failed" in message:
            return ConflictError("Duplicate value")
        if "FOREIGN KEY constraint failed" in message:
            return OwnershipError()
    return None
