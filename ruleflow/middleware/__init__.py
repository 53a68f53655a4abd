"""HTTP middleware: request ID and tenant context.

Applied in main app; order matters (last added = outermost).
Import and use from ruleflow.main.
"""

from ruleflow.middleware.request_id import RequestIDMiddleware
from ruleflow.middleware.tenant_context import TenantContextMiddleware

__all__ = [
    "RequestIDMiddleware",
    "TenantContextMiddleware",
]
