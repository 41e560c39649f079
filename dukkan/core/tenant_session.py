from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from sqlalchemy import Column, ForeignKey, Integer, event, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, declared_attr, with_loader_criteria

from dukkan.core.config import DB_STATEMENT_TIMEOUT_MS
from dukkan.core.errors import TenantIsolationError, translate_db_error
from dukkan.core.tenant_context import current_tenant_id, require_tenant_id, tenant_scope

logger = logging.getLogger(__name__)

T = TypeVar("T")

PENDING_EVENTS_KEY = "pending_events"
LOOKUP_TOKEN_KEY = "lookup_order_token"


class TenantScoped:
    """Mixin for mapped classes whose rows belong to exactly one tenant."""

    @declared_attr
    def tenant_id(cls):
        return Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)


class TenantSession(Session):
    """Session bound to the tenant active when it was opened.

    Opening one without a tenant in context raises
    ``TenantContextMissingError``.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.info["tenant_id"] = require_tenant_id()

    @property
    def tenant_id(self) -> int:
        return self.info["tenant_id"]

    def queue_event(self, event_name: str, payload: dict) -> None:
        """Dispatch ``payload`` on the event bus once this transaction commits."""
        self.info.setdefault(PENDING_EVENTS_KEY, []).append((event_name, payload))


def _session_tenant(session: TenantSession) -> int:
    tenant_id = session.tenant_id
    active = current_tenant_id()
    if active is not None and active != tenant_id:
        raise TenantIsolationError("Session is bound to a different tenant")
    return tenant_id


@event.listens_for(TenantSession, "after_begin")
def _set_tenant_setting(session, transaction, connection) -> None:
    tenant_id = _session_tenant(session)
    if transaction.nested:
        return
    session.info.pop(PENDING_EVENTS_KEY, None)
    if connection.dialect.name != "postgresql":
        return
    # is_local=true: the setting dies with the transaction
    connection.execute(
        text("SELECT set_config('app.tenant_id', :tenant_id, true)"),
        {"tenant_id": str(tenant_id)},
    )
    lookup_token = session.info.get(LOOKUP_TOKEN_KEY)
    if lookup_token:
        connection.execute(
            text("SELECT set_config('app.lookup_order_token', :token, true)"),
            {"token": lookup_token},
        )
    if DB_STATEMENT_TIMEOUT_MS > 0:
        connection.execute(text(f"SET LOCAL statement_timeout = {int(DB_STATEMENT_TIMEOUT_MS)}"))


@event.listens_for(TenantSession, "do_orm_execute")
def _add_tenant_criteria(execute_state) -> None:
    if (
        execute_state.is_select
        and not execute_state.is_column_load
        and not execute_state.is_relationship_load
    ):
        tenant_id = _session_tenant(execute_state.session)
        execute_state.statement = execute_state.statement.options(
            with_loader_criteria(
                TenantScoped,
                lambda cls: cls.tenant_id == tenant_id,
                include_aliases=True,
            )
        )


@event.listens_for(TenantSession, "before_flush")
def _guard_tenant_writes(session, flush_context, instances) -> None:
    tenant_id = _session_tenant(session)
    for obj in session.new:
        if not isinstance(obj, TenantScoped):
            continue
        if obj.tenant_id is None:
            obj.tenant_id = tenant_id
        elif obj.tenant_id != tenant_id:
            raise TenantIsolationError()
    for obj in list(session.dirty) + list(session.deleted):
        if isinstance(obj, TenantScoped) and obj.tenant_id != tenant_id:
            raise TenantIsolationError()


@event.listens_for(TenantSession, "after_commit")
def _dispatch_pending_events(session) -> None:
    pending = session.info.pop(PENDING_EVENTS_KEY, None)
    if not pending:
        return
    from dukkan.services.event_bus import event_bus

    for event_name, payload in pending:
        event_bus.emit(event_name, payload)


@event.listens_for(TenantSession, "after_rollback")
def _drop_pending_events(session) -> None:
    session.info.pop(PENDING_EVENTS_KEY, None)


def commit(db: Session) -> None:
    """Commit ``db``, rolling back and translating storage errors on failure."""
    try:
        db.commit()
    except DBAPIError as exc:
        db.rollback()
        domain_error = translate_db_error(exc)
        if domain_error is None:
            raise
        raise domain_error from exc
    except BaseException:
        db.rollback()
        raise


@contextmanager
def tenant_session(
    tenant_id: int,
    session_factory: Callable[[], Session] | None = None,
    *,
    lookup_token: str | None = None,
) -> Iterator[Session]:
    """Open a tenant-scoped unit of work.

    Commits when the block exits normally. Any exception, including
    cancellation, rolls back everything the block wrote.
    """
    if session_factory is None:
        from dukkan.core.database import TenantSessionLocal

        session_factory = TenantSessionLocal

    with tenant_scope(tenant_id):
        db = session_factory()
        if lookup_token:
            db.info[LOOKUP_TOKEN_KEY] = lookup_token
        try:
            try:
                yield db
                db.flush()
            except DBAPIError as exc:
                db.rollback()
                domain_error = translate_db_error(exc)
                if domain_error is None:
                    raise
                raise domain_error from exc
            except BaseException:
                db.rollback()
                raise
            commit(db)
        finally:
            db.close()


def with_tenant(
    tenant_id: int,
    unit_of_work: Callable[[Session], T],
    session_factory: Callable[[], Session] | None = None,
) -> T:
    with tenant_session(tenant_id, session_factory) as db:
        return unit_of_work(db)
