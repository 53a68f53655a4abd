"""Request ID middleware.

Forwards a client X-Request-ID or generates one, echoes it on the response and
exposes it to log records for the duration of the request. Client values are
sanitized (length + character set) so they cannot inject into log lines.
Raw ASGI (no BaseHTTPMiddleware) so streaming responses are unaffected.
"""

import re
import uuid
from typing import Callable

from ruleflow.core.request_context import set_request_id

REQUEST_ID_MAX_LENGTH = 64
REQUEST_ID_ALLOWED_PATTERN = re.compile(
    r"^[a-zA-Z0-9_-]{1," + str(REQUEST_ID_MAX_LENGTH) + r"}$"
)


def _header(scope: dict, name: bytes) -> str | None:
    for key, value in scope.get("headers", []):
        if key.lower() == name:
            return value.decode("utf-8", errors="replace").strip()
    return None


def resolve_request_id(raw: str | None) -> str:
    """The client's id when it is safe to log, else a fresh UUID4."""
    if raw and REQUEST_ID_ALLOWED_PATTERN.fullmatch(raw):
        return raw
    return str(uuid.uuid4())


def RequestIDMiddleware(app: Callable, header_name: str = "X-Request-ID") -> Callable:
    """Wrap ``app`` so every HTTP request carries a request id."""
    header_key = header_name.lower().encode()

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        request_id = resolve_request_id(_header(scope, header_key))
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_header(message: dict) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = [
                    *message.get("headers", []),
                    (header_key, request_id.encode()),
                ]
            await send(message)

        set_request_id(request_id)
        try:
            await app(scope, receive, send_with_header)
        finally:
            set_request_id(None)

    return asgi_app
