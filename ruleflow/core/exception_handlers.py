"""Centralized exception handlers for the FastAPI app.

Register with register_exception_handlers(app). Every error body has the
shape {"error", "message", ["details"], "request_id"} so a client report can be
matched to the server log line for the same request.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from ruleflow.core.config import get_settings
from ruleflow.domain.exceptions import RuleflowException
from ruleflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

# Domain error_code -> HTTP status; unknown codes answer 400.
ERROR_CODE_STATUS: dict[str, int] = {
    "RESOURCE_NOT_FOUND": 404,
    "VALIDATION_ERROR": 400,
    "TENANT_REQUIRED": 400,
    "INVALID_EXECUTION_STATE": 409,
    "INACTIVE_RULE": 409,
    "RULE_CONFIGURATION_ERROR": 422,
    "SERVICE_UNAVAILABLE": 503,
}


def _error_response(request: Request, status_code: int, body: dict[str, Any]) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        body = {**body, "request_id": request_id}
    return JSONResponse(status_code=status_code, content=body)


def _ruleflow_exception_handler(request: Request, exc: RuleflowException) -> JSONResponse:
    status_code = ERROR_CODE_STATUS.get(exc.error_code, 400)
    if status_code >= 500:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.error_code, exc)
    return _error_response(request, status_code, exc.to_dict())


def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _error_response(
        request,
        422,
        {
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": exc.errors(),
        },
    )


def _rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return _error_response(
        request,
        429,
        {"error": "RATE_LIMITED", "message": f"Rate limit exceeded: {exc.detail}"},
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(
        request, exc.status_code, {"error": "HTTP_ERROR", "message": exc.detail}
    )


def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """500; the exception text is only exposed when debug is on."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    message: Any = str(exc) if get_settings().debug else "Internal server error"
    return _error_response(request, 500, {"error": "INTERNAL_ERROR", "message": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the app. Call once after creating it."""
    app.add_exception_handler(RuleflowException, _ruleflow_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _generic_exception_handler)
