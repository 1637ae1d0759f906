"""
Invoice document emitter.

WHAT: Renders a committed invoice to PDF, stores it, and records the URL.

WHY: Rendering is slow and depends on external storage. It runs after the
invoice transaction has committed so a storage outage never loses or
duplicates an invoice. The step only reads amounts and writes
``document_url``, so calling it again for the same invoice is safe.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from jobbilling.core.exceptions import (
    AppException,
    DocumentRenderError,
    InvoiceNotFoundError,
    JobNotFoundError,
)
from jobbilling.dao.invoice import InvoiceDAO
from jobbilling.dao.job import JobDAO
from jobbilling.models.activity import ActivityType
from jobbilling.services.activity_service import ActivityService
from jobbilling.services.document_store import (
    PDF_CONTENT_TYPE,
    DocumentStore,
    get_document_store,
    invoice_document_key,
)
from jobbilling.services.pdf_service import PDFService

logger = logging.getLogger(__name__)


class InvoiceDocumentEmitter:
    """Renders and stores invoice PDFs."""

    def __init__(
        self,
        session: AsyncSession,
        pdf_service: Optional[PDFService] = None,
        document_store: Optional[DocumentStore] = None,
    ):
        self.session = session
        self.invoice_dao = InvoiceDAO(session)
        self.job_dao = JobDAO(session)
        self.activity_service = ActivityService(session)
        self.pdf_service = pdf_service or PDFService()
        self._document_store = document_store

    @property
    def document_store(self) -> DocumentStore:
        # Built lazily so a misconfigured backend surfaces as a render error.
        if self._document_store is None:
            self._document_store = get_document_store()
        return self._document_store

    async def render(self, invoice_id: int, actor_id: Optional[int] = None) -> str:
        """
        Render, store and record an invoice document.

        Args:
            invoice_id: Committed invoice
            actor_id: User requesting the render (timeline only)

        Returns:
            Document URL

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist
            DocumentRenderError: If rendering or storage fails
        """
        invoice = await self.invoice_dao.get_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(
                message=f"Invoice with id {invoice_id} not found",
                resource_type="Invoice",
                resource_id=invoice_id,
            )
        job = await self.job_dao.get_by_id(invoice.job_id)
        if job is None:
            raise JobNotFoundError(
                message=f"Job with id {invoice.job_id} not found",
                resource_type="Job",
                resource_id=invoice.job_id,
            )

        try:
            pdf_bytes = self.pdf_service.generate_invoice_pdf(invoice, job)
            url = await self.document_store.put(
                invoice_document_key(job.id, invoice.invoice_number),
                pdf_bytes,
                PDF_CONTENT_TYPE,
            )
        except AppException as e:
            raise DocumentRenderError(
                message=f"Could not store document for invoice {invoice.invoice_number}: {e.message}",
                invoice_id=invoice_id,
            ) from e
        except Exception as e:
            raise DocumentRenderError(
                message=f"Could not render document for invoice {invoice.invoice_number}",
                invoice_id=invoice_id,
                error=str(e),
            ) from e

        invoice_number = invoice.invoice_number
        # The document is stored; failing to record it must not read as a failed invoice.
        try:
            async with self.invoice_dao.job_lock(job.id):
                invoice = await self.invoice_dao.reload(invoice_id)
                await self.invoice_dao.set_document_url(invoice, url)
                await self.activity_service.record(
                    job_id=job.id,
                    actor_id=actor_id,
                    activity_type=ActivityType.INVOICE_DOCUMENT_GENERATED,
                    description=f"Generated document for invoice {invoice_number}",
                    metadata={"invoice_id": invoice_id},
                )
        except AppException as e:
            raise DocumentRenderError(
                message=f"Could not record document for invoice {invoice_number}: {e.message}",
                invoice_id=invoice_id,
                document_url=url,
            ) from e

        logger.info(f"Stored document for invoice {invoice_number}")
        return url
