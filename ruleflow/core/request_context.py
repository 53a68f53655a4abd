"""Request-scoped context: tenant and request id.

Middleware fills these contextvars per request; the database layer reads the
tenant for SET LOCAL app.current_tenant_id and the logging filter stamps both
values on every record. The cron scripts set the tenant per loop iteration.
"""

from contextvars import ContextVar
from dataclasses import dataclass

_current_tenant_id: ContextVar[str | None] = ContextVar("current_tenant_id", default=None)
_current_request_id: ContextVar[str | None] = ContextVar("current_request_id", default=None)


@dataclass(frozen=True)
class RequestContext:
    """Immutable snapshot of the current request context."""

    tenant_id: str | None
    request_id: str | None


def set_tenant_id(tenant_id: str | None) -> None:
    _current_tenant_id.set(tenant_id)


def get_tenant_id() -> str | None:
    """Return the current tenant ID if set."""
    return _current_tenant_id.get()


def set_request_id(request_id: str | None) -> None:
    _current_request_id.set(request_id)


def get_request_id() -> str | None:
    return _current_request_id.get()


def get_request_context() -> RequestContext:
    return RequestContext(tenant_id=get_tenant_id(), request_id=get_request_id())
