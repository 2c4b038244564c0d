"""Request ID middleware for correlating extraction logs.

Every /v1/extract call can launch a browser page and several network
requests; the request ID ties their log lines together. The ID comes from
the incoming X-Request-ID header (trimmed to a sane length) or is generated,
is stored in a ContextVar and echoed back on the response.
"""

import contextvars
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default=""
)


def _resolve_request_id(request: Request) -> str:
    incoming = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    if incoming:
        return incoming[:MAX_REQUEST_ID_LENGTH]
    return uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        rid = _resolve_request_id(request)
        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            request_id_var.reset(token)


def get_request_id() -> str:
    """Current request ID, or an empty string outside a request (CLI runs)."""
    return request_id_var.get()
