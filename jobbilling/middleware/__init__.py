"""
Middleware package.

WHY: Middleware provides cross-cutting concerns, here request correlation
for logging, that apply to all requests.
"""

from jobbilling.middleware.request_context import (
    RequestContextMiddleware,
    RequestContext,
    RequestIdLogFilter,
    get_request_context,
    get_client_ip,
)

__all__ = [
    "RequestContextMiddleware",
    "RequestContext",
    "RequestIdLogFilter",
    "get_request_context",
    "get_client_ip",
]
