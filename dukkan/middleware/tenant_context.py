from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from dukkan.core.config import JWT_SECRET_KEY
from dukkan.core.database import SessionLocal
from dukkan.core.errors import DomainError
from dukkan.core.tenant_context import tenant_scope
from dukkan.services.auth import decode_access_token, extract_bearer_token, verify_internal_token
from dukkan.services.tenant_resolver import TenantResolver

logger = logging.getLogger(__name__)


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Resolve the tenant once per request and bind it for everything downstream.

    ``request.state.principal_tenant_id`` is the tenant the caller proved it
    acts for (bearer claims or a verified internal call). Merchant routes
    require it to match the bound tenant.
    """

    def __init__(self, app, session_factory=None) -> None:
        super().__init__(app)
        self._session_factory = session_factory

    async def dispatch(self, request, call_next):
        request.state.tenant_id = None
        request.state.principal_tenant_id = None
        request.state.claims = None

        token = extract_bearer_token(request.headers.get("authorization"))
        if token and JWT_SECRET_KEY:
            try:
                request.state.claims = decode_access_token(token)
            except ValueError:
                return JSONResponse(
                    status_code=401,
                    content={"error": "invalid_token", "detail": "Invalid or expired token"},
                    headers={"WWW-Authenticate": "Bearer"},
                )

        internal = verify_internal_token(request.headers.get("x-internal-token"))
        evidence = TenantResolver.evidence_from_request(request, request.state.claims, internal=internal)
        db = (self._session_factory or SessionLocal)()
        try:
            tenant_id = TenantResolver.resolve(db, evidence)
        except DomainError as exc:
            return JSONResponse(status_code=400, content={"error": exc.code, "detail": exc.detail})
        finally:
            db.close()

        request.state.tenant_id = tenant_id
        request.state.principal_tenant_id = TenantResolver.principal_tenant(evidence)
        if tenant_id is None:
            return await call_next(request)

        with tenant_scope(tenant_id):
            return await call_next(request)
