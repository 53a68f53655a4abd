"""Tenant context middleware.

Sets the current tenant ID in context from the tenant header (X-Tenant-ID by
default). Database sessions read it for SET LOCAL app.current_tenant_id and
log records carry it as tenant_id.
"""

from __future__ import annotations

from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ruleflow.core.config import get_settings
from ruleflow.core.request_context import set_tenant_id


def _tenant_id_from_request(request: Request) -> str | None:
    """Return the stripped tenant header value, or None when absent or blank."""
    settings = get_settings()
    tenant_id = request.headers.get(settings.tenant_header_name)
    if tenant_id and tenant_id.strip():
        return tenant_id.strip()
    return None


def TenantContextMiddleware(app: Callable) -> Callable:
    """Set tenant context from the tenant header before the route runs."""

    class _Middleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next: Callable) -> Response:
            set_tenant_id(_tenant_id_from_request(request))
            try:
                return await call_next(request)
            finally:
                set_tenant_id(None)

    return _Middleware(app)
