"""
Invoice API endpoints.

WHAT: Invoice creation for a job, lifecycle actions and document rendering.

WHY: The CRM's billing tab creates deposit, progress, supplement and final
invoices and moves them through draft -> sent -> paid (or cancelled).

HOW: Thin FastAPI routers over InvoiceService. Amounts arrive in dollars
and are converted to cents by the schemas; errors are AppExceptions
rendered by the registered exception handlers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from jobbilling.core.deps import get_actor_id, get_invoice_service
from jobbilling.schemas.invoice import (
    InvoiceCreate,
    InvoiceCreatedResponse,
    InvoiceListResponse,
    InvoicePayment,
    InvoiceResponse,
)
from jobbilling.services.invoice_service import InvoiceService


job_invoices_router = APIRouter(prefix="/jobs/{job_id}/invoices", tags=["invoices"])
router = APIRouter(prefix="/invoices", tags=["invoices"])


# ============================================================================
# Job-scoped Endpoints
# ============================================================================


@job_invoices_router.post(
    "",
    response_model=InvoiceCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create invoice",
    description="Create a deposit, progress, supplement or final invoice for a job",
)
async def create_invoice(
    job_id: int,
    data: InvoiceCreate,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceCreatedResponse:
    """
    Create an invoice.

    The invoice is committed before its PDF is rendered. If rendering
    fails, the response still returns 201 with ``document_error`` set.
    """
    result = await service.create_invoice(
        job_id=job_id,
        invoice_type=data.invoice_type,
        actor_id=actor_id,
        custom_amount=data.custom_amount,
        change_order_ids=data.change_order_ids,
        due_date=data.due_date,
        notes=data.notes,
        tax_amount=data.tax_amount,
    )
    return InvoiceCreatedResponse(
        invoice_id=result.invoice_id,
        invoice_number=result.invoice_number,
        total_amount=result.total_amount,
        document_url=result.document_url,
        document_error=result.document_error,
    )


@job_invoices_router.get(
    "",
    response_model=InvoiceListResponse,
    summary="List job invoices",
)
async def list_job_invoices(
    job_id: int,
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceListResponse:
    invoices = await service.list_job_invoices(job_id)
    return InvoiceListResponse(
        items=[InvoiceResponse.model_validate(inv) for inv in invoices],
        total=len(invoices),
    )


# ============================================================================
# Invoice Endpoints
# ============================================================================


@router.get("/{invoice_id}", response_model=InvoiceResponse, summary="Get invoice")
async def get_invoice(
    invoice_id: int,
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceResponse:
    return InvoiceResponse.model_validate(await service.get_invoice(invoice_id))


@router.post("/{invoice_id}/send", response_model=InvoiceResponse, summary="Mark invoice sent")
async def send_invoice(
    invoice_id: int,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceResponse:
    return InvoiceResponse.model_validate(await service.mark_sent(invoice_id, actor_id))


@router.post("/{invoice_id}/pay", response_model=InvoiceResponse, summary="Record payment")
async def pay_invoice(
    invoice_id: int,
    data: Optional[InvoicePayment] = None,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceResponse:
    invoice = await service.mark_paid(
        invoice_id,
        actor_id,
        paid_date=data.paid_date if data else None,
    )
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse, summary="Cancel invoice")
async def cancel_invoice(
    invoice_id: int,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceResponse:
    return InvoiceResponse.model_validate(await service.cancel_invoice(invoice_id, actor_id))


@router.post(
    "/{invoice_id}/document",
    response_model=InvoiceResponse,
    summary="Render invoice PDF",
    description="Render (or re-render) the invoice PDF. Never changes invoice amounts.",
)
async def render_invoice_document(
    invoice_id: int,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceResponse:
    return InvoiceResponse.model_validate(await service.render_document(invoice_id, actor_id))
