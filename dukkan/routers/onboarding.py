from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from dukkan.core import config
from dukkan.core.errors import AuthenticationError
from dukkan.core.tenant_session import commit
from dukkan.deps import get_unscoped_db
from dukkan.services.auth import create_access_token
from dukkan.services.tenants import create_tenant

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


class OnboardingRequest(BaseModel):
    store_name: str = Field(..., min_length=2, max_length=120)
    phone: str = Field(..., min_length=6, max_length=30)
    slug: str | None = Field(default=None, min_length=3, max_length=80)
    category: str | None = Field(default=None, max_length=40)


class OnboardingResponse(BaseModel):
    tenant_id: int
    slug: str
    store_name: str
    phone: str
    access_token: str | None = None


def _ensure_onboarding_security(x_onboarding_token: str | None) -> None:
    if not config.IS_PROD:
        return
    configured = (config.ONBOARDING_API_TOKEN or "").strip()
    incoming = (x_onboarding_token or "").strip()
    if not configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Onboarding in production requires ONBOARDING_API_TOKEN",
        )
    if not hmac.compare_digest(incoming.encode(), configured.encode()):
        raise AuthenticationError("Invalid onboarding token")


@router.post("", response_model=OnboardingResponse, status_code=201)
def onboard_store(
    payload: OnboardingRequest,
    x_onboarding_token: str | None = Header(default=None),
    db: Session = Depends(get_unscoped_db),
):
    _ensure_onboarding_security(x_onboarding_token)
    tenant = create_tenant(
        db,
        name=payload.store_name,
        phone=payload.phone,
        slug=payload.slug,
        category=payload.category,
    )
    response = OnboardingResponse(
        tenant_id=tenant.id,
        slug=tenant.slug,
        store_name=tenant.name,
        phone=tenant.phone,
    )
    commit(db)
    if config.JWT_SECRET_KEY:
        response.access_token = create_access_token(f"store:{response.tenant_id}", response.tenant_id)
    logger.info("store onboarded slug=%s", response.slug, extra={"tenant_id": response.tenant_id})
    return response
