"""
Job Service.

WHAT: The slice of job management billing owns: registering a job and
recording its signed contract value.

WHY: The contract value is the base of the ceiling every invoice is checked
against. Lowering it below what has already been invoiced would leave the
job over-billed, so updates are checked against the ledger under the same
job lock invoicing uses.
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from jobbilling.core.exceptions import JobNotFoundError, ValidationError
from jobbilling.core.money import format_money
from jobbilling.dao.change_order import ChangeOrderDAO
from jobbilling.dao.invoice import InvoiceDAO
from jobbilling.dao.job import JobDAO
from jobbilling.models.activity import ActivityType, JobActivity
from jobbilling.models.job import DealType, Job
from jobbilling.services.activity_service import ActivityService
from jobbilling.services.authorization import (
    AllowAllAuthorization,
    AuthorizationCheck,
    require_job_edit,
)
from jobbilling.services.contract_ledger import (
    approved_changes_total,
    invoiced_total,
    resolve_contract_ceiling,
)

logger = logging.getLogger(__name__)


class JobService:
    """Service for job billing attributes."""

    def __init__(
        self,
        session: AsyncSession,
        authorization: Optional[AuthorizationCheck] = None,
    ):
        self.session = session
        self.authorization = authorization or AllowAllAuthorization()
        self.job_dao = JobDAO(session)
        self.invoice_dao = InvoiceDAO(session)
        self.change_order_dao = ChangeOrderDAO(session)
        self.activity_service = ActivityService(session)

    async def create_job(
        self,
        customer_name: str,
        address: Optional[str] = None,
        email: Optional[str] = None,
        deal_type: Optional[DealType] = None,
        base_contract_value: Optional[int] = None,
    ) -> Job:
        """
        Register a job for billing.

        Raises:
            ValidationError: If the contract value is negative
        """
        if base_contract_value is not None and base_contract_value < 0:
            raise ValidationError(
                message="Contract value cannot be negative",
                base_contract_value=base_contract_value,
            )
        job = await self.job_dao.create(
            customer_name=customer_name,
            address=address,
            email=email,
            deal_type=deal_type,
            base_contract_value=base_contract_value,
        )
        await self.session.commit()
        logger.info(f"Registered job {job.id} for billing")
        return job

    async def get_job(self, job_id: int) -> Job:
        job = await self.job_dao.get_by_id(job_id)
        if job is None:
            raise JobNotFoundError(
                message=f"Job with id {job_id} not found",
                resource_type="Job",
                resource_id=job_id,
            )
        return job

    async def list_activities(self, job_id: int, limit: int = 100) -> List[JobActivity]:
        """Job timeline, newest first."""
        await self.get_job(job_id)
        return await self.activity_service.list_for_job(job_id, limit=limit)

    async def update_contract_value(
        self,
        job_id: int,
        base_contract_value: Optional[int],
        actor_id: Optional[int] = None,
    ) -> Job:
        """
        Record or change the signed contract value.

        Args:
            job_id: Job ID
            base_contract_value: Cents, or None to clear it
            actor_id: Acting user

        Returns:
            Updated Job

        Raises:
            AuthorizationError: Actor may not edit the job
            JobNotFoundError: Job doesn't exist
            ValidationError: Negative value, or the new ceiling would be
                below what is already invoiced
        """
        await require_job_edit(self.authorization, actor_id, job_id)
        if base_contract_value is not None and base_contract_value < 0:
            raise ValidationError(
                message="Contract value cannot be negative",
                base_contract_value=base_contract_value,
            )

        async with self.invoice_dao.job_lock(job_id) as job:
            invoices = await self.invoice_dao.list_for_job(job_id)
            approved = await self.change_order_dao.list_approved(job_id)
            invoiced = invoiced_total(invoices)
            new_ceiling = resolve_contract_ceiling(
                base_contract_value, approved_changes_total(approved), invoiced
            )
            if invoiced > new_ceiling:
                raise ValidationError(
                    message=(
                        f"Contract value would be below the amount already invoiced. "
                        f"Total contract: {format_money(new_ceiling)}, "
                        f"Already invoiced: {format_money(invoiced)}"
                    ),
                    contract_ceiling=new_ceiling,
                    invoiced_total=invoiced,
                )

            previous = job.base_contract_value
            job.base_contract_value = base_contract_value
            await self.session.flush()
            await self.activity_service.record(
                job_id=job_id,
                actor_id=actor_id,
                activity_type=ActivityType.CONTRACT_VALUE_UPDATED,
                description=(
                    f"Contract value changed from "
                    f"{format_money(previous) if previous is not None else 'unset'} to "
                    f"{format_money(base_contract_value) if base_contract_value is not None else 'unset'}"
                ),
                metadata={"previous": previous, "current": base_contract_value},
            )

        logger.info(f"Contract value for job {job_id} set to {base_contract_value}")
        return job
