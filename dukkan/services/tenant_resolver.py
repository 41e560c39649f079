from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable
from urllib.parse import unquote

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from dukkan.core import config
from dukkan.core.errors import ValidationError
from dukkan.core.tenant_context import parse_tenant_id
from dukkan.models.order import Order
from dukkan.models.tenant import TENANT_ACTIVE, Tenant
from utils.slug import normalize_slug


logger = logging.getLogger(__name__)

# Second path segment values that are routes, not store slugs, under POST /orders/...
RESERVED_PUBLIC_ORDER_PATHS = {"tracking", "items", "day-close"}


@dataclass
class TenantEvidence:
    claims: dict[str, Any] | None = None
    header_tenant_id: str | None = None
    slug: str | None = None
    order_token: str | None = None
    order_tokens: list[str] = field(default_factory=list)
    # set only when the request carried a valid X-Internal-Token
    internal: bool = False

    @property
    def is_public(self) -> bool:
        return bool(self.slug or self.order_token or self.order_tokens)


class TenantResolver:
    """Work out which tenant a request belongs to.

    The principal's tenant comes from authenticated claims, or from the
    ``X-Tenant-ID`` header on a verified internal call. Storefront and
    tracking paths resolve from their slug or token alone; a principal
    naming another store there resolves to nothing. Returns ``None`` when
    nothing resolves.
    """

    @staticmethod
    def path_parts(path: str) -> list[str]:
        return [unquote(part) for part in (path or "").split("/") if part]

    @staticmethod
    def tracking_tokens_from_query(request: Request) -> list[str]:
        values = request.query_params.getlist("token") + request.query_params.getlist("token[]")
        tokens: list[str] = []
        for value in values:
            for token in value.split(","):
                token = token.strip()
                if token and token not in tokens:
                    tokens.append(token)
        return tokens

    @classmethod
    def evidence_from_request(
        cls,
        request: Request,
        claims: dict[str, Any] | None = None,
        *,
        internal: bool = False,
    ) -> TenantEvidence:
        evidence = TenantEvidence(
            claims=claims,
            header_tenant_id=request.headers.get("x-tenant-id"),
            internal=internal,
        )
        parts = cls.path_parts(request.url.path)

        if len(parts) >= 3 and parts[0] == "products" and parts[1] == "public":
            evidence.slug = parts[2]
        elif len(parts) >= 3 and parts[0] == "availability-requests" and parts[1] == "public":
            evidence.slug = parts[2]
        elif (
            request.method.upper() == "POST"
            and len(parts) == 2
            and parts[0] == "orders"
            and parts[1] not in RESERVED_PUBLIC_ORDER_PATHS
            and not parts[1].isdigit()
        ):
            evidence.slug = parts[1]
        elif len(parts) >= 3 and parts[0] == "orders" and parts[1] == "tracking":
            evidence.order_token = parts[2]
        elif len(parts) == 2 and parts[0] == "orders" and parts[1] == "tracking":
            evidence.order_tokens = cls.tracking_tokens_from_query(request)
        return evidence

    @staticmethod
    def principal_tenant(evidence: TenantEvidence, *, allow_header: bool | None = None) -> int | None:
        """Tenant of the authenticated caller, if any."""
        tenant_id = parse_tenant_id((evidence.claims or {}).get("tenant_id"))
        if tenant_id is not None:
            return tenant_id

        if allow_header is None:
            allow_header = config.ALLOW_TENANT_HEADER
        if allow_header and evidence.internal:
            return parse_tenant_id(evidence.header_tenant_id)
        return None

    @classmethod
    def resolve(cls, db: Session, evidence: TenantEvidence, *, allow_header: bool | None = None) -> int | None:
        principal_id = cls.principal_tenant(evidence, allow_header=allow_header)
        if not evidence.is_public:
            return principal_id

        if evidence.slug:
            tenant_id = cls.resolve_by_slug(db, evidence.slug)
        elif evidence.order_token:
            tenant_id = cls.resolve_by_order_token(db, evidence.order_token)
        else:
            tenant_id = cls.resolve_by_order_tokens(db, evidence.order_tokens)

        if principal_id is not None and tenant_id is not None and principal_id != tenant_id:
            logger.warning(
                "public path belongs to another store",
                extra={"tenant_id": principal_id, "endpoint": evidence.slug or "tracking"},
            )
            return None
        return tenant_id

    @staticmethod
    def resolve_by_slug(db: Session, slug: str) -> int | None:
        normalized = normalize_slug(slug)
        if not normalized:
            return None
        if db.get_bind().dialect.name == "postgresql":
            value = db.execute(
                text("SELECT app.resolve_tenant_id_by_slug(:slug)"),
                {"slug": normalized},
            ).scalar()
        else:
            value = (
                db.query(Tenant.id)
                .filter(Tenant.slug == normalized, Tenant.status == TENANT_ACTIVE)
                .scalar()
            )
        return parse_tenant_id(value)

    @staticmethod
    def resolve_by_order_token(db: Session, token: str) -> int | None:
        token = (token or "").strip()
        if not token:
            return None
        if db.get_bind().dialect.name == "postgresql":
            value = db.execute(
                text("SELECT app.resolve_tenant_id_by_order_token(:token)"),
                {"token": token},
            ).scalar()
        else:
            value = db.query(Order.tenant_id).filter(Order.public_token == token).scalar()
        return parse_tenant_id(value)

    @classmethod
    def resolve_by_order_tokens(cls, db: Session, tokens: Iterable[str]) -> int | None:
        """Resolve one tenant for a batch of tracking tokens.

        Unknown tokens are ignored. Known tokens spanning several tenants are
        rejected.
        """
        tenant_ids = set()
        for token in tokens:
            tenant_id = cls.resolve_by_order_token(db, token)
            if tenant_id is not None:
                tenant_ids.add(tenant_id)
        if len(tenant_ids) > 1:
            raise ValidationError("Tracking tokens must belong to the same store")
        return tenant_ids.pop() if tenant_ids else None
