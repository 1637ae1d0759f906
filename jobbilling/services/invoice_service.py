"""
Invoice Service.

WHAT: Orchestrates invoice creation and the invoice lifecycle for a job.

WHY: Creating an invoice touches several records that must agree:
1. The invoice and its line items
2. The change orders a supplement bills
3. The job timeline
4. The per-job invoice sequence

All of them are read and written inside one job lock and one transaction.
Either everything commits or nothing does, and no two requests for the
same job ever interleave.

HOW: create_invoice runs
    authorize -> lock job -> read ledger -> compute -> number -> insert
    -> claim change orders -> timeline entry -> commit -> unlock
and then renders the PDF as a separate, retryable step whose failure is
reported in the result instead of undoing the invoice.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from jobbilling.core.config import settings
from jobbilling.core.exceptions import (
    DocumentRenderError,
    InvalidStateTransitionError,
    InvoiceNotFoundError,
    JobNotFoundError,
)
from jobbilling.core.money import format_money
from jobbilling.dao.change_order import ChangeOrderDAO
from jobbilling.dao.invoice import InvoiceDAO
from jobbilling.dao.job import JobDAO
from jobbilling.models.activity import ActivityType
from jobbilling.models.change_order import ChangeOrder
from jobbilling.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus, InvoiceType
from jobbilling.models.job import Job
from jobbilling.services.activity_service import ActivityService
from jobbilling.services.authorization import (
    AllowAllAuthorization,
    AuthorizationCheck,
    require_job_edit,
)
from jobbilling.services.change_order_registry import (
    ChangeOrderRegistry,
    ChangeOrderSummary,
    summarize,
)
from jobbilling.services.contract_ledger import ContractLedger, LedgerSnapshot
from jobbilling.services.document_emitter import InvoiceDocumentEmitter
from jobbilling.services.invoice_engine import InvoiceComputation, InvoiceRequest, compute
from jobbilling.services.invoice_sequencer import InvoiceSequencer, format_invoice_number

logger = logging.getLogger(__name__)


# ============================================================================
# Results
# ============================================================================


@dataclass(frozen=True)
class InvoiceCreationResult:
    """
    Outcome of create_invoice.

    Attributes:
        invoice_id: Committed invoice
        invoice_number: e.g. INV-42-03
        total_amount: Cents
        document_url: Rendered PDF location (None if rendering was skipped
            or failed)
        document_error: Why rendering failed; the invoice itself is
            committed regardless
    """

    invoice_id: int
    invoice_number: str
    total_amount: int
    document_url: Optional[str] = None
    document_error: Optional[str] = None


@dataclass
class BillingSummary:
    """Everything the job's billing tab shows."""

    job: Job
    ledger: LedgerSnapshot
    invoices: List[Invoice] = field(default_factory=list)
    unbilled_change_orders: List[ChangeOrder] = field(default_factory=list)
    change_orders: ChangeOrderSummary = field(default_factory=ChangeOrderSummary)


# ============================================================================
# Service
# ============================================================================


class InvoiceService:
    """
    Service for invoice operations.

    WHAT: Creates invoices, moves them through their lifecycle, and reports
    a job's billing position.
    """

    def __init__(
        self,
        session: AsyncSession,
        authorization: Optional[AuthorizationCheck] = None,
        document_emitter: Optional[InvoiceDocumentEmitter] = None,
    ):
        """
        Initialize InvoiceService.

        Args:
            session: Async database session
            authorization: Job edit check (defaults to allow-all)
            document_emitter: PDF renderer/storer (defaults to the configured one)
        """
        self.session = session
        self.authorization = authorization or AllowAllAuthorization()
        self.invoice_dao = InvoiceDAO(session)
        self.job_dao = JobDAO(session)
        self.change_order_dao = ChangeOrderDAO(session)
        self.change_order_registry = ChangeOrderRegistry(session, self.authorization)
        self.sequencer = InvoiceSequencer(self.invoice_dao)
        self.activity_service = ActivityService(session)
        self.document_emitter = document_emitter or InvoiceDocumentEmitter(session)

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_invoice(
        self,
        job_id: int,
        invoice_type: InvoiceType,
        actor_id: Optional[int] = None,
        custom_amount: Optional[int] = None,
        change_order_ids: Optional[Sequence[int]] = None,
        due_date: Optional[date] = None,
        notes: Optional[str] = None,
        tax_amount: Optional[int] = None,
        render_document: bool = True,
    ) -> InvoiceCreationResult:
        """
        Create an invoice for a job.

        Args:
            job_id: Job to bill
            invoice_type: deposit / progress / supplement / final
            actor_id: Acting user
            custom_amount: Cents (deposit/progress)
            change_order_ids: Change orders to bill (supplement)
            due_date: Defaults to today + INVOICE_DUE_DAYS
            notes: Printed on the invoice
            tax_amount: Externally computed tax in cents
            render_document: Render the PDF after commit

        Returns:
            InvoiceCreationResult

        Raises:
            AuthorizationError: Actor may not edit the job
            JobNotFoundError: Job doesn't exist
            ValidationError: Bad input, no remaining balance, or over ceiling
            ChangeOrderNotFoundError: Requested change orders not on the job
            ConflictError: Change orders already billed, or sequence collision
            StorageError: The transaction failed to commit
        """
        await require_job_edit(self.authorization, actor_id, job_id)

        request = InvoiceRequest(
            invoice_type=invoice_type,
            custom_amount=custom_amount,
            change_order_ids=tuple(change_order_ids or ()),
            tax_amount=tax_amount,
        )

        async with self.invoice_dao.job_lock(job_id) as job:
            snapshot = await self._ledger_snapshot(job)
            requested_change_orders: List[ChangeOrder] = []
            if invoice_type == InvoiceType.SUPPLEMENT and request.unique_change_order_ids:
                requested_change_orders = await self.change_order_dao.get_many_for_job(
                    job_id, request.unique_change_order_ids
                )

            computation = compute(request, job, snapshot, requested_change_orders)

            sequence = await self.sequencer.next_sequence(job_id)
            invoice = self._build_invoice(
                job_id=job_id,
                invoice_type=invoice_type,
                sequence=sequence,
                computation=computation,
                due_date=due_date,
                notes=notes,
                actor_id=actor_id,
            )
            await self.invoice_dao.insert_invoice(invoice, self._build_line_items(computation))

            if computation.change_order_ids:
                await self.change_order_registry.claim(
                    job_id, computation.change_order_ids, invoice.id
                )

            await self.activity_service.record(
                job_id=job_id,
                actor_id=actor_id,
                activity_type=ActivityType.INVOICE_CREATED,
                description=(
                    f"Created {invoice_type.value} invoice {invoice.invoice_number} "
                    f"for {format_money(invoice.total_amount)}"
                ),
                metadata={
                    "invoice_id": invoice.id,
                    "invoice_number": invoice.invoice_number,
                    "total_amount": invoice.total_amount,
                    "change_order_ids": computation.change_order_ids,
                },
            )

        logger.info(
            f"Created invoice {invoice.invoice_number} ({invoice_type.value}) "
            f"for job {job_id}: {format_money(invoice.total_amount)}"
        )

        # A failed render may roll the session back and expire the invoice.
        invoice_id = invoice.id
        invoice_number = invoice.invoice_number
        total_amount = invoice.total_amount

        document_url = None
        document_error = None
        if render_document:
            try:
                document_url = await self.document_emitter.render(invoice_id, actor_id)
            except DocumentRenderError as e:
                logger.warning(f"Invoice {invoice_number} committed but not rendered: {e.message}")
                document_error = e.message

        return InvoiceCreationResult(
            invoice_id=invoice_id,
            invoice_number=invoice_number,
            total_amount=total_amount,
            document_url=document_url,
            document_error=document_error,
        )

    async def render_document(self, invoice_id: int, actor_id: Optional[int] = None) -> Invoice:
        """
        (Re-)render an invoice's PDF.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist
            DocumentRenderError: If rendering or storage fails
        """
        invoice = await self.get_invoice(invoice_id)
        await require_job_edit(self.authorization, actor_id, invoice.job_id)
        await self.document_emitter.render(invoice_id, actor_id)
        return await self.get_invoice(invoice_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def mark_sent(self, invoice_id: int, actor_id: Optional[int] = None) -> Invoice:
        """
        Mark a draft invoice as sent.

        Raises:
            InvalidStateTransitionError: If the invoice isn't a draft
        """
        return await self._transition(
            invoice_id,
            actor_id,
            allowed=(InvoiceStatus.DRAFT,),
            target=InvoiceStatus.SENT,
        )

    async def mark_paid(
        self,
        invoice_id: int,
        actor_id: Optional[int] = None,
        paid_date: Optional[date] = None,
    ) -> Invoice:
        """
        Record payment of a sent (or overdue) invoice.

        Raises:
            InvalidStateTransitionError: If the invoice isn't sent or overdue
        """
        return await self._transition(
            invoice_id,
            actor_id,
            allowed=(InvoiceStatus.SENT, InvoiceStatus.OVERDUE),
            target=InvoiceStatus.PAID,
            paid_date=paid_date or date.today(),
        )

    async def cancel_invoice(self, invoice_id: int, actor_id: Optional[int] = None) -> Invoice:
        """
        Cancel an unpaid invoice.

        Its total stops counting against the ceiling, its number is never
        reused, and change orders it billed stay billed.

        Raises:
            InvalidStateTransitionError: If the invoice is paid or cancelled
        """
        return await self._transition(
            invoice_id,
            actor_id,
            allowed=(InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.OVERDUE),
            target=InvoiceStatus.CANCELLED,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = await self.invoice_dao.get_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(
                message=f"Invoice with id {invoice_id} not found",
                resource_type="Invoice",
                resource_id=invoice_id,
            )
        return invoice

    async def list_job_invoices(self, job_id: int) -> List[Invoice]:
        await self._get_job(job_id)
        return await self.invoice_dao.list_for_job(job_id)

    async def billing_summary(self, job_id: int) -> BillingSummary:
        """
        Ledger snapshot, invoices and change order position for a job.

        Raises:
            JobNotFoundError: If the job doesn't exist
        """
        job = await self._get_job(job_id)
        invoices = await self.invoice_dao.list_for_job(job_id)
        approved = await self.change_order_dao.list_approved(job_id)
        all_change_orders = await self.change_order_dao.list_for_job(job_id)
        return BillingSummary(
            job=job,
            ledger=ContractLedger.snapshot(job, approved, invoices),
            invoices=invoices,
            unbilled_change_orders=[co for co in approved if co.is_billable],
            change_orders=summarize(all_change_orders),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _ledger_snapshot(self, job: Job) -> LedgerSnapshot:
        invoices = await self.invoice_dao.list_for_job(job.id)
        approved = await self.change_order_dao.list_approved(job.id)
        return ContractLedger.snapshot(job, approved, invoices)

    def _build_invoice(
        self,
        job_id: int,
        invoice_type: InvoiceType,
        sequence: int,
        computation: InvoiceComputation,
        due_date: Optional[date],
        notes: Optional[str],
        actor_id: Optional[int],
    ) -> Invoice:
        invoice_date = date.today()
        return Invoice(
            job_id=job_id,
            invoice_number=format_invoice_number(job_id, sequence),
            invoice_type=invoice_type,
            sequence_number=sequence,
            amount=computation.amount,
            tax_amount=computation.tax_amount,
            total_amount=computation.total_amount,
            status=InvoiceStatus.DRAFT,
            invoice_date=invoice_date,
            due_date=due_date or invoice_date + timedelta(days=settings.INVOICE_DUE_DAYS),
            notes=notes,
            created_by=actor_id,
        )

    @staticmethod
    def _build_line_items(computation: InvoiceComputation) -> List[InvoiceLineItem]:
        return [
            InvoiceLineItem(
                description=draft.description,
                quantity=1,
                unit_price=draft.amount,
                total_price=draft.amount,
                change_order_id=draft.change_order_id,
                sort_order=index,
            )
            for index, draft in enumerate(computation.line_items)
        ]

    async def _transition(
        self,
        invoice_id: int,
        actor_id: Optional[int],
        allowed: Sequence[InvoiceStatus],
        target: InvoiceStatus,
        paid_date: Optional[date] = None,
    ) -> Invoice:
        invoice = await self.get_invoice(invoice_id)
        job_id = invoice.job_id
        await require_job_edit(self.authorization, actor_id, job_id)

        async with self.invoice_dao.job_lock(job_id):
            invoice = await self.invoice_dao.reload(invoice_id)
            if invoice.status not in allowed:
                raise InvalidStateTransitionError(
                    message=(
                        f"Cannot mark invoice {invoice.invoice_number} as {target.value}: "
                        f"it is {invoice.status.value}"
                    ),
                    invoice_id=invoice_id,
                    current_status=invoice.status.value,
                    target_status=target.value,
                )

            if target == InvoiceStatus.SENT:
                await self.invoice_dao.mark_sent(invoice)
                activity_type = ActivityType.INVOICE_SENT
                verb = "Sent"
            elif target == InvoiceStatus.PAID:
                await self.invoice_dao.mark_paid(invoice, paid_date)
                activity_type = ActivityType.INVOICE_PAID
                verb = "Recorded payment for"
            else:
                await self.invoice_dao.cancel(invoice)
                activity_type = ActivityType.INVOICE_CANCELLED
                verb = "Cancelled"

            await self.activity_service.record(
                job_id=job_id,
                actor_id=actor_id,
                activity_type=activity_type,
                description=(
                    f"{verb} invoice {invoice.invoice_number} "
                    f"({format_money(invoice.total_amount)})"
                ),
                metadata={"invoice_id": invoice_id, "status": target.value},
            )

        logger.info(f"Invoice {invoice.invoice_number} is now {target.value}")
        return invoice

    async def _get_job(self, job_id: int) -> Job:
        job = await self.job_dao.get_by_id(job_id)
        if job is None:
            raise JobNotFoundError(
                message=f"Job with id {job_id} not found",
                resource_type="Job",
                resource_id=job_id,
            )
        return job
