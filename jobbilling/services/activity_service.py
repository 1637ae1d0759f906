"""
Job Activity Service.

WHAT: Records billing events on the job timeline.

WHY: The service layer:
1. Gives every billing operation one call for timeline entries
2. Keeps entry wording consistent across invoices and change orders
3. Writes in the caller's transaction so entries roll back with the change

HOW: Thin wrapper over JobActivityDAO.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from jobbilling.dao.activity import JobActivityDAO
from jobbilling.models.activity import ActivityType, JobActivity


class ActivityService:
    """
    Service for job timeline operations.

    WHAT: Records and lists job activities.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize ActivityService.

        Args:
            session: Async database session
        """
        self.session = session
        self.activity_dao = JobActivityDAO(session)

    async def record(
        self,
        job_id: int,
        description: str,
        actor_id: Optional[int] = None,
        activity_type: ActivityType = ActivityType.INVOICE_CREATED,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> JobActivity:
        """
        Record a timeline entry on a job.

        Args:
            job_id: Job ID
            description: Human-readable description
            actor_id: User who performed the action
            activity_type: Category of the entry
            metadata: Structured details (ids, amounts in cents)

        Returns:
            Created JobActivity
        """
        return await self.activity_dao.create_entry(
            job_id=job_id,
            activity_type=activity_type.value,
            description=description,
            actor_id=actor_id,
            metadata=metadata,
        )

    async def list_for_job(self, job_id: int, limit: int = 100) -> List[JobActivity]:
        return await self.activity_dao.list_for_job(job_id, limit=limit)
