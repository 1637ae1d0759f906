"""
Custom exception hierarchy for structured error handling.

WHY: Custom exceptions provide:
1. Consistent error handling across the billing API
2. HTTP status code mapping for FastAPI
3. Structured error responses with contextual data (amounts, ids)
4. Easier debugging with detailed context

Every rejection of an invoice request carries a human-readable message with
the concrete numbers involved, so callers can render it directly.

IMPORTANT: NEVER use base Exception class. Always use custom exceptions.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    WHY: Centralizing exception handling in a base class ensures consistent
    error responses and HTTP status code mapping.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        WHY: Context parameters allow including correction details
        (job_id, change_order_ids, computed balances) alongside the message.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "secret", "key", "api_key"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Authorization Exceptions
# ============================================================================


class AuthorizationError(AppException):
    """
    Raised when the caller lacks edit rights on a job.

    WHY: Authorization is checked before any ledger computation so that
    rejected callers never see computed amounts.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "You do not have permission to perform this action"


# ============================================================================
# Validation & Input Exceptions
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    WHY: Bad or missing per-type invoice input (no custom amount, empty
    change order list, no remaining balance) returns 400 with enough detail
    for the caller to correct the request.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class JobNotFoundError(ResourceNotFoundError):
    """Raised when a job doesn't exist."""

    default_message = "Job not found"


class InvoiceNotFoundError(ResourceNotFoundError):
    """Raised when an invoice doesn't exist."""

    default_message = "Invoice not found"


class ChangeOrderNotFoundError(ResourceNotFoundError):
    """Raised when one or more change orders don't exist on the job."""

    default_message = "Change order not found"


# ============================================================================
# Business Logic Exceptions
# ============================================================================


class ConflictError(AppException):
    """
    Raised when a request conflicts with already-committed billing state.

    WHY: Double-billing a change order or colliding on an invoice sequence
    number means the request was valid when composed but lost a race or
    repeats an earlier one. 409 tells the caller to reload and resubmit.

    HTTP Status: 409 Conflict
    """

    status_code = 409
    default_message = "Request conflicts with current billing state"


class InvalidStateTransitionError(AppException):
    """
    Raised when an invalid state transition is attempted.

    WHY: Invoices (draft → sent → paid) and change orders
    (pending → approved/rejected) have valid transitions. Attempting an
    invalid one (e.g., cancelling a paid invoice) fails with a clear message.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Invalid state transition"


# ============================================================================
# External Service Exceptions
# ============================================================================


class ExternalServiceError(AppException):
    """
    Base exception for external service failures.

    HTTP Status: 502 Bad Gateway
    """

    status_code = 502
    default_message = "External service error"


class DocumentStorageError(ExternalServiceError):
    """
    Raised when storing a rendered document fails (S3 or local disk).

    HTTP Status: 502 Bad Gateway
    """

    default_message = "Document storage error"


class DocumentRenderError(ExternalServiceError):
    """
    Raised when an invoice document cannot be rendered or stored.

    WHY: Rendering is a best-effort step after the invoice is committed.
    Its failure has its own channel so it can be reported and retried
    without ever rolling back or re-creating the invoice.

    HTTP Status: 502 Bad Gateway
    """

    default_message = "Invoice document could not be generated"


# ============================================================================
# Database Exceptions
# ============================================================================


class DatabaseError(AppException):
    """
    Raised when database operations fail.

    WHY: Database errors should be caught at the DAO layer and converted
    to application exceptions with safe error messages (no SQL exposed).

    HTTP Status: 500 Internal Server Error
    """

    status_code = 500
    default_message = "Database error"


class StorageError(DatabaseError):
    """
    Raised when an invoice transaction fails to persist.

    WHY: The whole creation (invoice, line items, change order claims)
    has already been rolled back when this is raised; nothing partially
    commits.

    HTTP Status: 500 Internal Server Error
    """

    default_message = "Billing records could not be saved"
