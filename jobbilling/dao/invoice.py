"""
Invoice Data Access Object (DAO).

WHAT: Database operations for invoices and their line items, plus the
per-job transaction boundary every billing write runs inside.

WHY: The DAO pattern:
1. Separates data access from billing rules
2. Owns the one place where a billing transaction commits or rolls back
3. Converts driver errors into application exceptions (no SQL exposed)

HOW: ``job_lock`` acquires the in-process job lock, locks the job row,
yields the job, and commits before releasing the lock. Everything the body
does (invoice insert, line items, change order claims, timeline entries)
commits or rolls back together.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Iterable, List, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from jobbilling.core.exceptions import ConflictError, JobNotFoundError, StorageError
from jobbilling.dao.base import BaseDAO
from jobbilling.dao.job import JobDAO
from jobbilling.dao.job_lock import job_locks
from jobbilling.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus
from jobbilling.models.job import Job

logger = logging.getLogger(__name__)


class InvoiceDAO(BaseDAO[Invoice]):
    """
    Data Access Object for Invoice model.

    WHAT: Provides the job lock, invoice persistence and job-scoped queries.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize InvoiceDAO.

        Args:
            session: Async database session
        """
        super().__init__(Invoice, session)
        self.job_dao = JobDAO(session)

    @asynccontextmanager
    async def job_lock(self, job_id: int) -> AsyncIterator[Job]:
        """
        Run a billing unit of work for one job, serialized and atomic.

        WHAT: Exclusive per-job critical section wrapped around one
        transaction.

        WHY: Reads inside the block (invoice count, billed totals,
        unbilled change orders) are guaranteed to be the snapshot the
        block's writes commit against. The lock is released only after
        COMMIT, so the next holder sees the committed result.

        Any pending work already in the session is committed with the block.

        Args:
            job_id: Job to lock

        Yields:
            The locked Job

        Raises:
            JobNotFoundError: If the job doesn't exist
            StorageError: If the database rejects the transaction
        """
        async with job_locks.hold(job_id):
            try:
                job = await self.job_dao.get_for_update(job_id)
                if job is None:
                    raise JobNotFoundError(
                        message=f"Job with id {job_id} not found",
                        resource_type="Job",
                        resource_id=job_id,
                    )
                yield job
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(f"Billing transaction for job {job_id} failed: {e}", exc_info=True)
                raise StorageError(job_id=job_id) from e
            except Exception:
                await self.session.rollback()
                raise

    async def insert_invoice(
        self,
        invoice: Invoice,
        line_items: Sequence[InvoiceLineItem],
    ) -> Invoice:
        """
        Persist an invoice together with its line items.

        WHY: The unique (job_id, sequence_number) and invoice_number
        constraints are the storage backstop for numbering. A violation
        means another writer allocated the same number, which is reported
        as a conflict rather than a storage failure.

        Args:
            invoice: Unsaved invoice
            line_items: Unsaved line items, in display order

        Returns:
            The invoice with its id populated

        Raises:
            ConflictError: If the sequence number is already taken
        """
        invoice.line_items = list(line_items)
        self.session.add(invoice)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                message=(
                    f"Invoice number {invoice.invoice_number} is already in use "
                    f"for job {invoice.job_id}. Please retry."
                ),
                job_id=invoice.job_id,
                sequence_number=invoice.sequence_number,
            ) from e
        return invoice

    async def list_for_job(
        self,
        job_id: int,
        exclude_statuses: Iterable[InvoiceStatus] = (),
    ) -> List[Invoice]:
        """
        Get a job's invoices in sequence order.

        Args:
            job_id: Job ID
            exclude_statuses: Statuses to leave out (e.g. CANCELLED when
                summing billed totals)

        Returns:
            List of invoices with line items loaded
        """
        query = select(Invoice).where(Invoice.job_id == job_id)
        excluded = list(exclude_statuses)
        if excluded:
            query = query.where(Invoice.status.not_in(excluded))
        result = await self.session.execute(
            query.order_by(Invoice.sequence_number).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count_for_job(self, job_id: int) -> int:
        """
        Count every invoice ever issued for a job, cancelled ones included.

        Args:
            job_id: Job ID

        Returns:
            Number of invoices
        """
        result = await self.session.execute(
            select(func.count(Invoice.id)).where(Invoice.job_id == job_id)
        )
        return int(result.scalar_one())

    async def reload(self, invoice_id: int) -> Optional[Invoice]:
        """
        Re-read an invoice, overwriting any copy in the identity map.

        WHY: Status transitions validate against the row as committed by
        the previous lock holder, not an object loaded before the lock.
        """
        result = await self.session.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # Status transitions (callers validate the current status)
    # =========================================================================

    async def mark_sent(self, invoice: Invoice) -> Invoice:
        invoice.mark_sent()
        await self.session.flush()
        return invoice

    async def mark_paid(self, invoice: Invoice, paid_date: date) -> Invoice:
        invoice.status = InvoiceStatus.PAID
        invoice.paid_date = paid_date
        await self.session.flush()
        return invoice

    async def cancel(self, invoice: Invoice) -> Invoice:
        invoice.status = InvoiceStatus.CANCELLED
        await self.session.flush()
        return invoice

    async def set_document_url(self, invoice: Invoice, url: str) -> Invoice:
        """
        Record where the rendered invoice document lives.

        Args:
            invoice: Invoice that was rendered
            url: Retrievable document location

        Returns:
            Updated invoice
        """
        invoice.document_url = url
        await self.session.flush()
        return invoice
