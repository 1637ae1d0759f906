"""
Unit tests for Invoice DAO.

WHAT: Tests for InvoiceDAO database operations and the job lock.

WHY: Verifies that:
1. job_lock commits the whole unit of work, or rolls all of it back
2. The (job_id, sequence_number) constraint surfaces as a ConflictError
3. Job-scoped queries order by sequence and honour status exclusions
4. Status transitions stamp their dates

HOW: Uses pytest-asyncio with an in-memory SQLite database. Ids are read
before any expected failure because a rollback expires loaded objects.
"""

import pytest
from datetime import date

from sqlalchemy import inspect

from jobbilling.core.exceptions import ConflictError, JobNotFoundError, ValidationError
from jobbilling.dao.invoice import InvoiceDAO
from jobbilling.models.change_order import ChangeOrder
from jobbilling.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus, InvoiceType
from jobbilling.models.job import Job
from tests.factories import InvoiceFactory, JobFactory


def _new_invoice(job_id: int, sequence: int, total: int = 10_000) -> Invoice:
    return Invoice(
        job_id=job_id,
        invoice_number=f"INV-{job_id}-{sequence:02d}",
        invoice_type=InvoiceType.PROGRESS,
        sequence_number=sequence,
        amount=total,
        tax_amount=0,
        total_amount=total,
        status=InvoiceStatus.DRAFT,
        invoice_date=date.today(),
    )


def _line_item(total: int = 10_000) -> InvoiceLineItem:
    return InvoiceLineItem(
        description="Progress Payment",
        quantity=1,
        unit_price=total,
        total_price=total,
        sort_order=0,
    )


class TestJobLock:
    """Tests for the per-job unit of work."""

    @pytest.mark.asyncio
    async def test_commits_on_success(self, db_session):
        """Test that work done inside the lock is committed."""
        job = await JobFactory.create(db_session)
        dao = InvoiceDAO(db_session)

        async with dao.job_lock(job.id) as locked_job:
            assert locked_job.id == job.id
            await dao.insert_invoice(_new_invoice(job.id, 1), [_line_item()])

        assert not db_session.in_transaction()
        assert await dao.count_for_job(job.id) == 1

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self, db_session):
        """
        Test that an error inside the lock discards every write.

        WHY: An invoice must never be half-created.
        """
        job = await JobFactory.create(db_session)
        job_id = job.id
        dao = InvoiceDAO(db_session)

        with pytest.raises(ValidationError):
            async with dao.job_lock(job_id):
                await dao.insert_invoice(_new_invoice(job_id, 1), [_line_item()])
                raise ValidationError(message="over the ceiling")

        assert await dao.count_for_job(job_id) == 0

    @pytest.mark.asyncio
    async def test_unknown_job(self, db_session):
        dao = InvoiceDAO(db_session)

        with pytest.raises(JobNotFoundError):
            async with dao.job_lock(99999):
                pass


class TestInsertInvoice:
    """Tests for invoice persistence."""

    @pytest.mark.asyncio
    async def test_insert_with_line_items(self, db_session):
        job = await JobFactory.create(db_session)
        dao = InvoiceDAO(db_session)

        async with dao.job_lock(job.id):
            invoice = await dao.insert_invoice(_new_invoice(job.id, 1), [_line_item()])

        assert invoice.id is not None
        reloaded = await dao.reload(invoice.id)
        assert reloaded.invoice_number == f"INV-{job.id}-01"
        assert [item.description for item in reloaded.line_items] == ["Progress Payment"]

    @pytest.mark.asyncio
    async def test_duplicate_sequence_is_conflict(self, db_session):
        """
        Test that a reused sequence number is reported as a conflict.

        WHY: The unique constraint is the backstop if numbering ever runs
        outside the job lock; the caller should retry, not see a 500.
        """
        job = await JobFactory.create(db_session)
        job_id = job.id
        await InvoiceFactory.create(db_session, job, sequence_number=1)
        dao = InvoiceDAO(db_session)

        with pytest.raises(ConflictError) as exc_info:
            async with dao.job_lock(job_id):
                await dao.insert_invoice(_new_invoice(job_id, 1), [_line_item()])

        assert exc_info.value.status_code == 409
        assert exc_info.value.context["sequence_number"] == 1
        assert await dao.count_for_job(job_id) == 1


class TestInvoiceQueries:
    """Tests for job-scoped queries."""

    @pytest.mark.asyncio
    async def test_list_for_job_in_sequence_order(self, db_session):
        job = await JobFactory.create(db_session)
        other_job = await JobFactory.create(db_session, customer_name="Other")
        await InvoiceFactory.create(db_session, job, sequence_number=2)
        await InvoiceFactory.create(db_session, job, sequence_number=1)
        await InvoiceFactory.create(db_session, other_job)

        invoices = await InvoiceDAO(db_session).list_for_job(job.id)

        assert [inv.sequence_number for inv in invoices] == [1, 2]

    @pytest.mark.asyncio
    async def test_list_for_job_excludes_statuses(self, db_session):
        job = await JobFactory.create(db_session)
        await InvoiceFactory.create(db_session, job, status=InvoiceStatus.CANCELLED)
        kept = await InvoiceFactory.create(db_session, job, status=InvoiceStatus.SENT)

        invoices = await InvoiceDAO(db_session).list_for_job(
            job.id, exclude_statuses=[InvoiceStatus.CANCELLED]
        )

        assert [inv.id for inv in invoices] == [kept.id]

    @pytest.mark.asyncio
    async def test_count_includes_cancelled(self, db_session):
        """
        Test that cancelled invoices are counted.

        WHY: Cancelled invoices keep their numbers; the next sequence must
        skip past them.
        """
        job = await JobFactory.create(db_session)
        await InvoiceFactory.create(db_session, job, status=InvoiceStatus.CANCELLED)
        await InvoiceFactory.create(db_session, job)

        assert await InvoiceDAO(db_session).count_for_job(job.id) == 2


class TestInvoiceStatusUpdates:
    """Tests for status transition writes."""

    @pytest.mark.asyncio
    async def test_mark_sent_sets_timestamp(self, db_session):
        job = await JobFactory.create(db_session)
        invoice = await InvoiceFactory.create(db_session, job, status=InvoiceStatus.DRAFT)

        await InvoiceDAO(db_session).mark_sent(invoice)

        assert invoice.status == InvoiceStatus.SENT
        assert invoice.sent_at is not None

    @pytest.mark.asyncio
    async def test_mark_paid_sets_paid_date(self, db_session):
        job = await JobFactory.create(db_session)
        invoice = await InvoiceFactory.create(db_session, job)

        await InvoiceDAO(db_session).mark_paid(invoice, date(2026, 3, 1))

        assert invoice.status == InvoiceStatus.PAID
        assert invoice.paid_date == date(2026, 3, 1)

    @pytest.mark.asyncio
    async def test_set_document_url(self, db_session):
        job = await JobFactory.create(db_session)
        invoice = await InvoiceFactory.create(db_session, job)

        await InvoiceDAO(db_session).set_document_url(invoice, "file:///tmp/inv.pdf")

        assert invoice.document_url == "file:///tmp/inv.pdf"


class TestBillingMappings:
    """
    Tests for the ORM relationships the DAOs rely on.

    WHY: Line items are the only relationship ever read; they load eagerly
    so async code never triggers a lazy load. Everything else is reached
    through job_id / invoice_id queries.
    """

    def test_only_invoice_line_items_are_mapped(self):
        assert [rel.key for rel in inspect(Invoice).relationships] == ["line_items"]
        assert inspect(Invoice).relationships["line_items"].lazy == "selectin"
        for model in (Job, ChangeOrder, InvoiceLineItem):
            assert list(inspect(model).relationships) == []

    @pytest.mark.asyncio
    async def test_line_items_loaded_in_sort_order(self, db_session):
        job = await JobFactory.create(db_session)
        job_id = job.id
        dao = InvoiceDAO(db_session)
        async with dao.job_lock(job_id):
            invoice = await dao.insert_invoice(
                _new_invoice(job_id, 1),
                [
                    InvoiceLineItem(
                        description="Second", quantity=1, unit_price=4_000,
                        total_price=4_000, sort_order=1,
                    ),
                    InvoiceLineItem(
                        description="First", quantity=1, unit_price=6_000,
                        total_price=6_000, sort_order=0,
                    ),
                ],
            )
        invoice_id = invoice.id

        reloaded = await dao.reload(invoice_id)

        assert [item.description for item in reloaded.line_items] == ["First", "Second"]
        assert all(item.invoice_id == invoice_id for item in reloaded.line_items)
