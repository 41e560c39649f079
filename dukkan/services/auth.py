from __future__ import annotations

import hmac
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from dukkan.core import config
from dukkan.core.config import JWT_ALGORITHM, JWT_EXPIRE_MINUTES, JWT_SECRET_KEY


def create_access_token(
    user_id: str,
    tenant_id: int,
    extra: Optional[Dict[str, Any]] = None,
    expires_minutes: int = JWT_EXPIRE_MINUTES,
    secret: str | None = None,
) -> str:
    """
    "sub" must be a string (python-jose rejects anything else).
    """
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=expires_minutes)

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "tenant_id": tenant_id,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    if extra:
        payload.update(extra)

    return jwt.encode(payload, secret or JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, secret: str | None = None) -> Dict[str, Any]:
    """
    Returns the JWT payload or raises ValueError when the token is invalid.
    """
    key = secret or JWT_SECRET_KEY
    if not key:
        raise ValueError("JWT secret is not configured")
    try:
        return jwt.decode(token, key, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise ValueError("Invalid or expired token") from e


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def verify_internal_token(incoming: str | None) -> bool:
    """True when ``incoming`` matches the configured internal API token."""
    configured = (config.INTERNAL_API_TOKEN or "").strip()
    incoming = (incoming or "").strip()
    if not configured or not incoming:
        return False
    return hmac.compare_digest(incoming.encode(), configured.encode())
