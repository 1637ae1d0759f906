"""
Job Data Access Object (DAO).

WHAT: Database operations for the Job model.

WHY: Jobs are owned by the wider CRM; billing only needs to read them,
record their contract value, and lock their row while invoicing.
"""

from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jobbilling.dao.base import BaseDAO
from jobbilling.models.job import Job


class JobDAO(BaseDAO[Job]):
    """
    Data Access Object for Job model.

    HOW: Extends BaseDAO with the row-lock read used by the job lock.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize JobDAO.

        Args:
            session: Async database session
        """
        super().__init__(Job, session)

    async def get_for_update(self, job_id: int) -> Optional[Job]:
        """
        Load a job and lock its row until the transaction ends.

        WHAT: ``SELECT ... FOR UPDATE`` on the job.

        WHY: On PostgreSQL this serializes invoice creation for the job
        across application instances. Dialects without row locks (SQLite)
        omit the clause; the in-process lock covers them.

        Args:
            job_id: Job ID

        Returns:
            Locked Job, or None if it doesn't exist
        """
        result = await self.session.execute(
            select(Job)
            .where(Job.id == job_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
