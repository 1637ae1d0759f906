"""
Tests for custom exception hierarchy.

WHY: Comprehensive exception testing ensures:
1. Exceptions serialize correctly without leaking sensitive data
2. HTTP status codes map correctly (billing conflicts are 409, not 400)
3. Context data (amounts, ids) reaches the client
4. Exception handlers work as expected
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from jobbilling.core.exceptions import (
    AppException,
    AuthorizationError,
    ValidationError,
    ResourceNotFoundError,
    JobNotFoundError,
    InvoiceNotFoundError,
    ChangeOrderNotFoundError,
    ConflictError,
    InvalidStateTransitionError,
    DocumentStorageError,
    DocumentRenderError,
    StorageError,
)
from jobbilling.core.exception_handlers import app_exception_handler


class TestAppException:
    """Test base AppException class."""

    def test_default_message(self):
        """Verify default message is used when none provided."""
        exc = AppException()
        assert exc.message == "An unexpected error occurred"
        assert exc.status_code == 500

    def test_custom_message(self):
        """Verify custom message overrides default."""
        exc = AppException(message="Custom error message")
        assert exc.message == "Custom error message"

    def test_custom_status_code(self):
        """Verify custom status code overrides class default."""
        exc = AppException(status_code=418)
        assert exc.status_code == 418

    def test_context_data(self):
        """Verify context data is stored."""
        exc = AppException(job_id=12, invoice_id=34, action="cancel")
        assert exc.context == {"job_id": 12, "invoice_id": 34, "action": "cancel"}

    def test_to_dict_basic(self):
        """Verify exception serializes to dict correctly."""
        exc = AppException(message="Test error", job_id=12)
        result = exc.to_dict()

        assert result["error"] == "AppException"
        assert result["message"] == "Test error"
        assert result["status_code"] == 500
        assert result["details"] == {"job_id": 12}

    def test_to_dict_filters_sensitive_data(self):
        """Verify sensitive fields are filtered from dict."""
        exc = AppException(
            message="Test error",
            job_id=12,
            password="secret123",
            token="abc123",
            api_key="key123",
            secret="mysecret",
            regular_field="visible",
        )
        result = exc.to_dict()

        assert "password" not in result["details"]
        assert "token" not in result["details"]
        assert "api_key" not in result["details"]
        assert "secret" not in result["details"]

        assert result["details"]["job_id"] == 12
        assert result["details"]["regular_field"] == "visible"

    def test_to_dict_no_context(self):
        """Verify to_dict works with no context data."""
        exc = AppException(message="Test error")
        assert exc.to_dict()["details"] is None


class TestStatusCodes:
    """Each billing failure maps to its own HTTP status."""

    @pytest.mark.parametrize(
        "exc_class,status_code",
        [
            (AuthorizationError, 403),
            (ValidationError, 400),
            (ResourceNotFoundError, 404),
            (JobNotFoundError, 404),
            (InvoiceNotFoundError, 404),
            (ChangeOrderNotFoundError, 404),
            (ConflictError, 409),
            (InvalidStateTransitionError, 400),
            (DocumentStorageError, 502),
            (DocumentRenderError, 502),
            (StorageError, 500),
        ],
    )
    def test_status_code(self, exc_class, status_code):
        assert exc_class().status_code == status_code

    def test_not_found_errors_share_base(self):
        """WHY: Handlers and callers can catch every 404 in one clause."""
        for exc_class in (JobNotFoundError, InvoiceNotFoundError, ChangeOrderNotFoundError):
            assert issubclass(exc_class, ResourceNotFoundError)

    def test_conflict_carries_change_order_ids(self):
        """Verify conflicts tell the caller which change orders to drop."""
        exc = ConflictError(
            message="Change orders [3] are not approved or have already been billed",
            change_order_ids=[3],
        )
        assert exc.to_dict()["details"] == {"change_order_ids": [3]}


class TestExceptionHandlerIntegration:
    """Test exception handler integration with FastAPI."""

    @pytest.fixture
    def app(self):
        """Create test FastAPI app with exception handlers."""
        app = FastAPI()
        app.add_exception_handler(AppException, app_exception_handler)

        @app.get("/test-over-ceiling")
        async def test_over_ceiling():
            raise ValidationError(
                message="Invoice total $1.00 exceeds the remaining contract balance of $0.00",
                contract_ceiling=100,
                invoiced_total=100,
            )

        @app.get("/test-sensitive-data")
        async def test_sensitive_data():
            raise AppException(
                message="Error with sensitive data",
                job_id=12,
                secret="should-be-filtered",
            )

        return app

    @pytest.fixture
    def client(self, app):
        """Create test client."""
        return TestClient(app)

    def test_exception_handler_returns_json(self, client):
        """Verify exception handler returns JSON response."""
        response = client.get("/test-over-ceiling")

        assert response.status_code == 400
        assert response.headers["content-type"] == "application/json"

        data = response.json()
        assert data["error"] == "ValidationError"
        assert "exceeds the remaining contract balance" in data["message"]
        assert data["details"] == {"contract_ceiling": 100, "invoiced_total": 100}

    def test_exception_handler_filters_sensitive_data(self, client):
        """Verify exception handler filters sensitive data from response."""
        data = client.get("/test-sensitive-data").json()

        assert "secret" not in data["details"]
        assert data["details"]["job_id"] == 12
