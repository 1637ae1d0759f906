"""
Request Context Middleware Tests.

WHAT: Unit tests for the RequestContextMiddleware and the log filter.

WHY: Billing logs come from services and DAOs that never see the request.
The request id attached by this middleware is what ties an invoice attempt,
its job lock and its PDF render together in the logs. These tests ensure
correct behavior for:
- Client IP extraction (direct and through proxies)
- Request ID generation and propagation
- Context availability throughout request lifecycle
- Request id on log records

HOW: Tests use hand-built Starlette requests to verify context extraction
and propagation.
"""

import logging

import pytest
from unittest.mock import MagicMock
from starlette.requests import Request
from starlette.responses import Response

from jobbilling.middleware.request_context import (
    REQUEST_ID_HEADER,
    RequestContext,
    RequestContextMiddleware,
    RequestIdLogFilter,
    _request_context,
    get_client_ip,
    get_request_context,
)


def _make_scope(path: str = "/test", method: str = "GET", headers: dict = None) -> dict:
    return {
        "type": "http",
        "method": method,
        "path": path,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "query_string": b"",
    }


def _make_request(path: str = "/test", method: str = "GET", headers: dict = None) -> Request:
    request = Request(_make_scope(path, method, headers))
    request._url = type("URL", (), {"path": path})()
    return request


class TestGetClientIp:
    """Tests for the get_client_ip function."""

    def _make_request(self, headers: dict = None, client_host: str = None) -> Request:
        scope = {
            "type": "http",
            "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
            "client": (client_host, 12345) if client_host else None,
        }
        return Request(scope)

    def test_get_client_ip_from_x_real_ip(self):
        """
        Test IP extraction from X-Real-IP header.

        WHY: Nginx and similar proxies set X-Real-IP to the original client.
        """
        request = self._make_request(
            headers={"X-Real-IP": "192.168.1.100"},
            client_host="10.0.0.1",
        )
        assert get_client_ip(request) == "192.168.1.100"

    def test_get_client_ip_from_x_forwarded_for(self):
        """
        Test IP extraction from X-Forwarded-For header.

        WHY: The first IP in the chain is the original client.
        """
        request = self._make_request(
            headers={"X-Forwarded-For": "203.0.113.50, 70.41.3.18, 150.172.238.178"},
            client_host="10.0.0.1",
        )
        assert get_client_ip(request) == "203.0.113.50"

    def test_get_client_ip_prefers_x_real_ip_over_x_forwarded_for(self):
        request = self._make_request(
            headers={
                "X-Real-IP": "192.168.1.100",
                "X-Forwarded-For": "203.0.113.50, 70.41.3.18",
            },
            client_host="10.0.0.1",
        )
        assert get_client_ip(request) == "192.168.1.100"

    def test_get_client_ip_from_direct_connection(self):
        request = self._make_request(headers={}, client_host="192.168.1.50")
        assert get_client_ip(request) == "192.168.1.50"

    def test_get_client_ip_unknown_fallback(self):
        """
        Test IP extraction returns 'unknown' when no IP available.

        WHY: Missing client info should not crash the request.
        """
        request = self._make_request(headers={}, client_host=None)
        assert get_client_ip(request) == "unknown"

    def test_get_client_ip_strips_whitespace(self):
        request = self._make_request(headers={"X-Real-IP": "  192.168.1.100  "})
        assert get_client_ip(request) == "192.168.1.100"


class TestGetRequestContext:
    """Tests for the get_request_context function."""

    def test_get_request_context_returns_none_by_default(self):
        """
        Test that context returns None outside of request.

        WHY: Background callers (scripts, migrations) log too.
        """
        _request_context.set(None)
        assert get_request_context() is None

    def test_get_request_context_returns_set_context(self):
        ctx = RequestContext(
            request_id="test-id",
            ip_address="1.2.3.4",
            path="/api/jobs/1/invoices",
            method="POST",
        )

        token = _request_context.set(ctx)
        try:
            assert get_request_context() == ctx
        finally:
            _request_context.reset(token)


class TestRequestIdLogFilter:
    """The filter stamps every record so the log format never fails."""

    def _record(self) -> logging.LogRecord:
        return logging.LogRecord("jobbilling", logging.INFO, __file__, 1, "msg", None, None)

    def test_outside_request_uses_placeholder(self):
        _request_context.set(None)
        record = self._record()

        assert RequestIdLogFilter().filter(record) is True
        assert record.request_id == "-"

    def test_inside_request_uses_request_id(self):
        ctx = RequestContext(request_id="req-42", ip_address="1.2.3.4", path="/", method="GET")
        token = _request_context.set(ctx)
        try:
            record = self._record()
            RequestIdLogFilter().filter(record)
            assert record.request_id == "req-42"
        finally:
            _request_context.reset(token)


class TestRequestContextMiddleware:
    """Tests for the RequestContextMiddleware class."""

    @pytest.mark.asyncio
    async def test_middleware_adds_request_id_header(self):
        """
        Test that middleware adds X-Request-ID to response.

        WHY: Clients quote the id when reporting a failed invoice.
        """
        async def mock_call_next(req):
            return Response(content="OK", status_code=200)

        middleware = RequestContextMiddleware(app=MagicMock())
        response = await middleware.dispatch(_make_request(), mock_call_next)

        # UUID4 format (36 chars with hyphens)
        assert len(response.headers[REQUEST_ID_HEADER]) == 36

    @pytest.mark.asyncio
    async def test_middleware_reuses_incoming_request_id(self):
        """
        WHY: A gateway that already assigned an id keeps one id end to end.
        """
        async def mock_call_next(req):
            return Response(content="OK", status_code=200)

        middleware = RequestContextMiddleware(app=MagicMock())
        response = await middleware.dispatch(
            _make_request(headers={"X-Request-ID": "gateway-123"}),
            mock_call_next,
        )

        assert response.headers[REQUEST_ID_HEADER] == "gateway-123"

    @pytest.mark.asyncio
    async def test_middleware_sets_context_in_request_state(self):
        captured_context = None

        async def mock_call_next(req):
            nonlocal captured_context
            captured_context = getattr(req.state, "context", None)
            return Response(content="OK", status_code=200)

        middleware = RequestContextMiddleware(app=MagicMock())
        await middleware.dispatch(
            _make_request(
                path="/api/jobs/1/invoices",
                method="POST",
                headers={"X-Real-IP": "192.168.1.100"},
            ),
            mock_call_next,
        )

        assert captured_context is not None
        assert captured_context.ip_address == "192.168.1.100"
        assert captured_context.path == "/api/jobs/1/invoices"
        assert captured_context.method == "POST"

    @pytest.mark.asyncio
    async def test_middleware_sets_context_var(self):
        """
        WHY: Services and DAOs read the context without the request object.
        """
        context_during_request = None

        async def mock_call_next(req):
            nonlocal context_during_request
            context_during_request = get_request_context()
            return Response(content="OK", status_code=200)

        middleware = RequestContextMiddleware(app=MagicMock())
        await middleware.dispatch(_make_request(headers={"X-Real-IP": "10.0.0.1"}), mock_call_next)

        assert context_during_request is not None
        assert context_during_request.ip_address == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_middleware_clears_context_after_request(self):
        async def mock_call_next(req):
            return Response(content="OK", status_code=200)

        middleware = RequestContextMiddleware(app=MagicMock())
        await middleware.dispatch(_make_request(), mock_call_next)

        assert get_request_context() is None

    @pytest.mark.asyncio
    async def test_middleware_clears_context_on_error(self):
        """
        WHY: A failing handler must not leak its id into the next request.
        """
        async def mock_call_next(req):
            raise RuntimeError("handler failed")

        middleware = RequestContextMiddleware(app=MagicMock())
        with pytest.raises(RuntimeError):
            await middleware.dispatch(_make_request(), mock_call_next)

        assert get_request_context() is None
