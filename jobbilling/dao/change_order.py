"""
Change Order Data Access Object (DAO).

WHAT: Database operations for the ChangeOrder model.

WHY: Change orders feed the contract ceiling and are billed at most once.
The claim below is the only statement that writes ``invoice_id``; it is a
conditional UPDATE so that the database itself refuses to bill a change
order twice even if two transactions raced past the read.

HOW: Extends BaseDAO with job-scoped queries and the claim operation.
"""

from typing import List, Sequence
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jobbilling.dao.base import BaseDAO
from jobbilling.models.base import utcnow
from jobbilling.models.change_order import ChangeOrder, ChangeOrderStatus


class ChangeOrderDAO(BaseDAO[ChangeOrder]):
    """
    Data Access Object for ChangeOrder model.

    WHAT: Provides CRUD, listing, and claim operations for change orders.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize ChangeOrderDAO.

        Args:
            session: Async database session
        """
        super().__init__(ChangeOrder, session)

    async def list_for_job(self, job_id: int) -> List[ChangeOrder]:
        """
        Get every change order on a job, newest first.

        Args:
            job_id: Job ID

        Returns:
            List of change orders
        """
        result = await self.session.execute(
            select(ChangeOrder)
            .where(ChangeOrder.job_id == job_id)
            .order_by(ChangeOrder.created_at.desc(), ChangeOrder.id.desc())
        )
        return list(result.scalars().all())

    async def list_approved(self, job_id: int) -> List[ChangeOrder]:
        """
        Get approved change orders on a job (billed or not).

        WHY: Every approved change order counts toward the contract
        ceiling, whether or not it has been invoiced yet.

        Args:
            job_id: Job ID

        Returns:
            Approved change orders, oldest first
        """
        result = await self.session.execute(
            select(ChangeOrder)
            .where(
                ChangeOrder.job_id == job_id,
                ChangeOrder.status == ChangeOrderStatus.APPROVED,
            )
            .order_by(ChangeOrder.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_approved_unbilled(self, job_id: int) -> List[ChangeOrder]:
        """
        Get approved change orders that no invoice has claimed.

        Args:
            job_id: Job ID

        Returns:
            Billable change orders, oldest first
        """
        result = await self.session.execute(
            select(ChangeOrder)
            .where(
                ChangeOrder.job_id == job_id,
                ChangeOrder.status == ChangeOrderStatus.APPROVED,
                ChangeOrder.invoice_id.is_(None),
            )
            .order_by(ChangeOrder.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_many_for_job(self, job_id: int, ids: Sequence[int]) -> List[ChangeOrder]:
        """
        Load specific change orders, restricted to one job.

        Args:
            job_id: Job ID
            ids: Change order IDs

        Returns:
            The change orders that exist on the job (may be fewer than ids)
        """
        if not ids:
            return []
        result = await self.session.execute(
            select(ChangeOrder)
            .where(
                ChangeOrder.job_id == job_id,
                ChangeOrder.id.in_(list(ids)),
            )
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def claim(self, job_id: int, ids: Sequence[int], invoice_id: int) -> int:
        """
        Mark change orders as billed by an invoice.

        WHAT: Sets invoice_id only on rows that are still approved and
        unbilled.

        WHY: The WHERE clause re-checks billability in the same statement
        that writes, so the caller can compare the row count with the
        number requested and abort the whole transaction on a mismatch.

        Args:
            job_id: Job ID the change orders must belong to
            ids: Change order IDs to claim
            invoice_id: Claiming invoice

        Returns:
            Number of rows actually claimed
        """
        result = await self.session.execute(
            update(ChangeOrder)
            .where(
                ChangeOrder.job_id == job_id,
                ChangeOrder.id.in_(list(ids)),
                ChangeOrder.status == ChangeOrderStatus.APPROVED,
                ChangeOrder.invoice_id.is_(None),
            )
            .values(invoice_id=invoice_id, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount
