"""Logging configuration for the application.

Every record gets ``tenant_id`` and ``request_id`` attributes from the request
context ("-" outside a request), so engine log lines can be traced back to the
tenant and the HTTP call that fired a rule.
"""

import logging
import sys

from ruleflow.core.config import get_settings
from ruleflow.core.request_context import get_request_context

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "[tenant=%(tenant_id)s request=%(request_id)s] %(message)s"
)


class RequestContextFilter(logging.Filter):
    """Copy the current tenant and request id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_request_context()
        record.tenant_id = context.tenant_id or "-"
        record.request_id = context.request_id or "-"
        return True


def setup_logging() -> None:
    """Configure application-wide logging to stdout.

    Level is DEBUG when settings.debug is True, otherwise settings.log_level
    (INFO when the name is not a known level).
    """
    settings = get_settings()
    if settings.debug:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName(settings.log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=log_level, handlers=[handler], force=True)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name (usually ``__name__``)."""
    return logging.getLogger(name)
