"""
Request context middleware.

WHAT: Assigns every request an id and makes it, along with the caller's
address, available for the rest of the request.

WHY: Billing operations log from services and DAOs that never see the
request object. A request id in every log line lets one invoice attempt be
traced from the HTTP call through the job lock to the PDF render.

HOW: Stores the context in a ContextVar (async-safe per request) and in
``request.state``; ``RequestIdLogFilter`` copies the id onto log records.
"""

import logging
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass(frozen=True)
class RequestContext:
    """
    Request-scoped context.

    Fields:
    - request_id: Correlation id (client-supplied X-Request-ID or a new UUID)
    - ip_address: Client IP (first X-Forwarded-For hop when proxied)
    - path: Request path
    - method: HTTP method
    """

    request_id: str
    ip_address: str
    path: str
    method: str


_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """Current request context, or None outside a request."""
    return _request_context.get()


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP, honouring proxy headers.

    Checks X-Real-IP, then the first X-Forwarded-For entry, then the
    socket peer.
    """
    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip:
        return x_real_ip.strip()

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


class RequestIdLogFilter(logging.Filter):
    """Adds ``request_id`` to every log record ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _request_context.get()
        record.request_id = context.request_id if context else "-"
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that captures and stores request context.

    The request id is echoed back in the X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        context = RequestContext(
            request_id=request_id,
            ip_address=get_client_ip(request),
            path=request.url.path,
            method=request.method,
        )
        request.state.context = context
        token = _request_context.set(context)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _request_context.reset(token)
