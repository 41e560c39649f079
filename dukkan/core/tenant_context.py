from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Iterator, TypeVar

from dukkan.core.errors import TenantContextMissingError

T = TypeVar("T")

# Bound per logical request. asyncio tasks and Starlette's threadpool copy the
# current context, so the value follows the request across awaits and workers.
_TENANT_ID_CTX: ContextVar[int | None] = ContextVar("tenant_id", default=None)


def parse_tenant_id(value: Any) -> int | None:
    """Return a positive int tenant id, or None for anything else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        value = value.strip()
        if value.isdigit():
            parsed = int(value)
            return parsed if parsed > 0 else None
    return None


def current_tenant_id() -> int | None:
    return _TENANT_ID_CTX.get()


def require_tenant_id() -> int:
    tenant_id = _TENANT_ID_CTX.get()
    if tenant_id is None:
        raise TenantContextMissingError()
    return tenant_id


@contextmanager
def tenant_scope(tenant_id: int) -> Iterator[int]:
    """Bind ``tenant_id`` for the body of the ``with`` block.

    Nested scopes shadow the outer one; the outer value is restored on exit,
    including when the body raises.
    """
    parsed = parse_tenant_id(tenant_id)
    if parsed is None:
        raise TenantContextMissingError(f"Invalid tenant id: {tenant_id!r}")
    token = _TENANT_ID_CTX.set(parsed)
    try:
        yield parsed
    finally:
        _TENANT_ID_CTX.reset(token)


def run(tenant_id: int, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    with tenant_scope(tenant_id):
        return fn(*args, **kwargs)


async def run_async(tenant_id: int, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
    with tenant_scope(tenant_id):
        return await fn(*args, **kwargs)
