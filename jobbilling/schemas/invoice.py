"""
Invoice schemas for API request/response validation.

WHAT: Pydantic schemas for invoice creation, lifecycle actions and
responses.

WHY: Schemas provide:
1. Type-safe request/response handling
2. Conversion of dollar amounts to integer cents at the boundary
3. OpenAPI documentation generation

HOW: Uses Pydantic v2. Requests accept both snake_case and the CRM's
camelCase field names (``customAmount``, ``changeOrderIds``).
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from jobbilling.models.invoice import InvoiceStatus, InvoiceType
from jobbilling.schemas.money import MoneyIn, MoneyOut


# ============================================================================
# Request Schemas
# ============================================================================


class InvoiceCreate(BaseModel):
    """
    Schema for creating an invoice on a job.

    Required input depends on the type:
    - deposit / progress: custom_amount
    - supplement: change_order_ids
    - final: nothing (the balance is computed)
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    invoice_type: InvoiceType = Field(..., description="deposit, progress, supplement or final")
    custom_amount: Optional[MoneyIn] = Field(
        default=None,
        description="Amount in dollars for deposit/progress invoices",
    )
    change_order_ids: Optional[List[int]] = Field(
        default=None,
        description="Approved, unbilled change orders to bill (supplement)",
    )
    tax_amount: Optional[MoneyIn] = Field(
        default=None,
        description="Externally computed tax in dollars",
    )
    due_date: Optional[date] = Field(
        default=None,
        description="Payment due date (defaults to net 30)",
    )
    notes: Optional[str] = Field(default=None, max_length=5000)


class InvoicePayment(BaseModel):
    """Schema for recording payment of an invoice."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    paid_date: Optional[date] = Field(default=None, description="Defaults to today")


# ============================================================================
# Response Schemas
# ============================================================================


class InvoiceLineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    quantity: int
    unit_price: MoneyOut
    total_price: MoneyOut
    change_order_id: Optional[int]
    sort_order: int


class InvoiceResponse(BaseModel):
    """
    Schema for invoice response data.

    ``status`` is the stored status; ``display_status`` additionally shows
    unpaid invoices past their due date as overdue.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    invoice_number: str
    invoice_type: InvoiceType
    sequence_number: int
    status: InvoiceStatus
    display_status: InvoiceStatus

    amount: MoneyOut
    tax_amount: MoneyOut
    total_amount: MoneyOut

    invoice_date: date
    due_date: Optional[date]
    paid_date: Optional[date]
    sent_at: Optional[datetime]

    notes: Optional[str]
    document_url: Optional[str]
    created_by: Optional[int]
    created_at: datetime
    updated_at: datetime

    line_items: List[InvoiceLineItemResponse] = []


class InvoiceCreatedResponse(BaseModel):
    """
    Result of invoice creation.

    ``document_error`` is set when the invoice was committed but its PDF
    could not be produced; retry with POST /invoices/{id}/document.
    """

    invoice_id: int
    invoice_number: str
    total_amount: MoneyOut
    document_url: Optional[str] = None
    document_error: Optional[str] = None


class InvoiceListResponse(BaseModel):
    items: List[InvoiceResponse]
    total: int
