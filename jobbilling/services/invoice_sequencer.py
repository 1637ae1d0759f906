"""
Invoice numbering.

WHAT: Allocates the per-job sequence number and formats the invoice number.

WHY: Numbers are ``INV-{job_id}-{sequence:02d}`` and must strictly increase
per job with no reuse. Cancelled invoices keep their numbers, so the next
sequence counts every invoice regardless of status. Counting is only safe
inside the job lock; the unique (job_id, sequence_number) constraint turns
any escape from that rule into a ConflictError instead of a duplicate.
"""

from jobbilling.dao.invoice import InvoiceDAO


def format_invoice_number(job_id: int, sequence: int) -> str:
    """
    Format an invoice number.

    Sequences past 99 widen naturally: ``INV-7-100``.
    """
    return f"INV-{job_id}-{sequence:02d}"


class InvoiceSequencer:
    """Next-sequence allocation over the invoice table."""

    def __init__(self, invoice_dao: InvoiceDAO):
        self.invoice_dao = invoice_dao

    async def next_sequence(self, job_id: int) -> int:
        """
        Next sequence for a job. Call only while holding the job lock.

        Args:
            job_id: Job ID

        Returns:
            count(all invoices of the job) + 1
        """
        return await self.invoice_dao.count_for_job(job_id) + 1
