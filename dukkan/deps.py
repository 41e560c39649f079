# dukkan/deps.py
from __future__ import annotations

import logging

from fastapi import Request

from dukkan.core import database
from dukkan.core.errors import AuthenticationError, NotFoundError
from dukkan.core.tenant_context import current_tenant_id
from dukkan.core.tenant_session import LOOKUP_TOKEN_KEY

logger = logging.getLogger(__name__)


def _open_session(lookup_token: str | None = None):
    db = database.TenantSessionLocal()
    if lookup_token:
        db.info[LOOKUP_TOKEN_KEY] = lookup_token
    return db


def get_db(request: Request):
    """Tenant-scoped session for merchant routes.

    The caller must have authenticated for the bound tenant; a tenant that
    only came from a public slug or token is not enough.
    """
    tenant_id = current_tenant_id()
    principal_id = getattr(request.state, "principal_tenant_id", None)
    if tenant_id is None or principal_id != tenant_id:
        raise AuthenticationError()
    db = _open_session()
    try:
        yield db
    finally:
        db.close()


def get_tracking_db(request: Request):
    """Session for anonymous tracking-link routes.

    An unknown token never resolves a tenant, and is reported as a missing
    order rather than as missing tenant context.
    """
    if current_tenant_id() is None:
        raise NotFoundError("Order not found")
    db = _open_session(request.path_params.get("token"))
    try:
        yield db
    finally:
        db.close()


def get_optional_tracking_db():
    # batch tracking: no known token means an empty result, not an error
    if current_tenant_id() is None:
        yield None
        return
    db = _open_session()
    try:
        yield db
    finally:
        db.close()


def get_storefront_db():
    if current_tenant_id() is None:
        raise NotFoundError("Store not found")
    db = _open_session()
    try:
        yield db
    finally:
        db.close()


def get_unscoped_db():
    """Plain session for store onboarding; never touches tenant-scoped tables."""
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()
