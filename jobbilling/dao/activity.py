"""
Job Activity Data Access Object (DAO).

WHAT: Database operations for job timeline entries.

WHY: Billing writes timeline entries inside the same transaction as the
change they describe; reads serve the job timeline view.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jobbilling.dao.base import BaseDAO
from jobbilling.models.activity import JobActivity


class JobActivityDAO(BaseDAO[JobActivity]):
    """Data Access Object for JobActivity model."""

    def __init__(self, session: AsyncSession):
        """Initialize JobActivityDAO."""
        super().__init__(JobActivity, session)

    async def create_entry(
        self,
        job_id: int,
        activity_type: str,
        description: str,
        actor_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> JobActivity:
        """
        Add a timeline entry to the current transaction.

        WHY: Only flushed, never committed here; the entry shares the fate
        of the billing change it describes.

        Args:
            job_id: Job the entry belongs to
            activity_type: ActivityType value
            description: Human-readable text
            actor_id: Acting user
            metadata: Structured details

        Returns:
            Created JobActivity
        """
        entry = JobActivity(
            job_id=job_id,
            actor_id=actor_id,
            activity_type=activity_type,
            description=description,
            extra_data=metadata,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_for_job(
        self,
        job_id: int,
        activity_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[JobActivity]:
        """
        Get a job's timeline, newest first.

        Args:
            job_id: Job ID
            activity_type: Optional type filter
            limit: Maximum entries

        Returns:
            List of timeline entries
        """
        query = select(JobActivity).where(JobActivity.job_id == job_id)
        if activity_type:
            query = query.where(JobActivity.activity_type == activity_type)
        query = query.order_by(JobActivity.created_at.desc(), JobActivity.id.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())
