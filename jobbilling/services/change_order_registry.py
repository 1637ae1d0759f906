"""
Change Order Registry.

WHAT: Business logic for change orders: the approval workflow, the
billable set, and claiming change orders for a supplement invoice.

WHY: Change orders both raise the contract ceiling (once approved) and are
billed as supplement line items. The registry enforces that:
1. Only pending change orders can be approved or rejected
2. A change order is billed by at most one invoice, ever
3. Billed or approved change orders are never deleted, so the ceiling
   can't drop beneath invoices already issued

HOW: Workflow changes run under the job lock (same lock as invoicing) and
record a timeline entry in the same transaction. ``claim`` is called by the
invoice service from inside its own locked transaction.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from jobbilling.core.exceptions import (
    ChangeOrderNotFoundError,
    ConflictError,
    InvalidStateTransitionError,
    JobNotFoundError,
    ValidationError,
)
from jobbilling.core.money import format_money
from jobbilling.dao.change_order import ChangeOrderDAO
from jobbilling.dao.invoice import InvoiceDAO
from jobbilling.dao.job import JobDAO
from jobbilling.models.activity import ActivityType
from jobbilling.models.base import utcnow
from jobbilling.models.change_order import ChangeOrder, ChangeOrderStatus, ChangeOrderType
from jobbilling.services.activity_service import ActivityService
from jobbilling.services.authorization import (
    AllowAllAuthorization,
    AuthorizationCheck,
    require_job_edit,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeOrderSummary:
    """Per-job change order totals (cents) and counts."""

    total_approved: int = 0
    total_pending: int = 0
    total_billed: int = 0
    total_unbilled: int = 0
    approved_count: int = 0
    pending_count: int = 0
    rejected_count: int = 0


def summarize(change_orders: Sequence[ChangeOrder]) -> ChangeOrderSummary:
    """
    Fold change orders into totals.

    Approved change orders are split into billed and unbilled; rejected
    ones only contribute to the count.
    """
    totals = dict(
        total_approved=0,
        total_pending=0,
        total_billed=0,
        total_unbilled=0,
        approved_count=0,
        pending_count=0,
        rejected_count=0,
    )
    for co in change_orders:
        if co.status == ChangeOrderStatus.APPROVED:
            totals["total_approved"] += co.amount
            totals["approved_count"] += 1
            if co.is_billed:
                totals["total_billed"] += co.amount
            else:
                totals["total_unbilled"] += co.amount
        elif co.status == ChangeOrderStatus.PENDING:
            totals["total_pending"] += co.amount
            totals["pending_count"] += 1
        elif co.status == ChangeOrderStatus.REJECTED:
            totals["rejected_count"] += 1
    return ChangeOrderSummary(**totals)


class ChangeOrderRegistry:
    """
    Service for change order operations.

    WHAT: Lists, creates, approves, rejects, deletes and claims change orders.
    """

    def __init__(
        self,
        session: AsyncSession,
        authorization: Optional[AuthorizationCheck] = None,
    ):
        """
        Initialize ChangeOrderRegistry.

        Args:
            session: Async database session
            authorization: Job edit check (defaults to allow-all)
        """
        self.session = session
        self.authorization = authorization or AllowAllAuthorization()
        self.change_order_dao = ChangeOrderDAO(session)
        self.invoice_dao = InvoiceDAO(session)
        self.job_dao = JobDAO(session)
        self.activity_service = ActivityService(session)

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_for_job(self, job_id: int) -> List[ChangeOrder]:
        await self._require_job(job_id)
        return await self.change_order_dao.list_for_job(job_id)

    async def approved_unbilled(self, job_id: int) -> List[ChangeOrder]:
        """Approved change orders not yet claimed by any invoice."""
        await self._require_job(job_id)
        return await self.change_order_dao.list_approved_unbilled(job_id)

    async def summary(self, job_id: int) -> ChangeOrderSummary:
        await self._require_job(job_id)
        return summarize(await self.change_order_dao.list_for_job(job_id))

    async def get(self, change_order_id: int) -> ChangeOrder:
        change_order = await self.change_order_dao.get_by_id(change_order_id)
        if change_order is None:
            raise ChangeOrderNotFoundError(
                message=f"Change order with id {change_order_id} not found",
                resource_type="ChangeOrder",
                resource_id=change_order_id,
            )
        return change_order

    # =========================================================================
    # Workflow
    # =========================================================================

    async def create(
        self,
        job_id: int,
        description: str,
        amount: int,
        actor_id: Optional[int] = None,
        change_type: ChangeOrderType = ChangeOrderType.SUPPLEMENT,
    ) -> ChangeOrder:
        """
        Submit a change order for approval.

        Args:
            job_id: Job ID
            description: Scope description (becomes the line item text)
            amount: Amount in cents, must be positive
            actor_id: Submitting user
            change_type: Origin of the scope

        Returns:
            Pending ChangeOrder

        Raises:
            AuthorizationError: If the actor may not edit the job
            ValidationError: If the amount or description is invalid
            JobNotFoundError: If the job doesn't exist
        """
        await require_job_edit(self.authorization, actor_id, job_id)
        if amount <= 0:
            raise ValidationError(
                message="Change order amount must be greater than zero",
                amount=amount,
            )
        if not description or not description.strip():
            raise ValidationError(message="Change order description is required")

        async with self.invoice_dao.job_lock(job_id):
            change_order = ChangeOrder(
                job_id=job_id,
                change_type=change_type,
                description=description.strip(),
                amount=amount,
                status=ChangeOrderStatus.PENDING,
                created_by=actor_id,
            )
            self.session.add(change_order)
            await self.session.flush()
            await self.activity_service.record(
                job_id=job_id,
                actor_id=actor_id,
                activity_type=ActivityType.CHANGE_ORDER_CREATED,
                description=(
                    f"Created {change_type.value} change order: "
                    f"{change_order.description} ({format_money(amount)})"
                ),
                metadata={"change_order_id": change_order.id, "amount": amount},
            )

        logger.info(f"Change order {change_order.id} created on job {job_id}")
        return change_order

    async def approve(
        self,
        change_order_id: int,
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> ChangeOrder:
        """
        Approve a pending change order, raising the job's ceiling.

        Raises:
            ChangeOrderNotFoundError: If it doesn't exist
            InvalidStateTransitionError: If it isn't pending
        """
        return await self._decide(
            change_order_id,
            actor_id,
            ChangeOrderStatus.APPROVED,
            suffix=f" - {notes}" if notes else "",
        )

    async def reject(
        self,
        change_order_id: int,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> ChangeOrder:
        """
        Reject a pending change order.

        Raises:
            ChangeOrderNotFoundError: If it doesn't exist
            InvalidStateTransitionError: If it isn't pending
        """
        return await self._decide(
            change_order_id,
            actor_id,
            ChangeOrderStatus.REJECTED,
            suffix=f" - Reason: {reason}" if reason else "",
        )

    async def delete(self, change_order_id: int, actor_id: Optional[int] = None) -> None:
        """
        Delete a pending or rejected change order.

        WHY: Approved change orders are part of the ceiling that existing
        invoices were checked against; removing one could leave the job
        invoiced above its contract value.

        Raises:
            ChangeOrderNotFoundError: If it doesn't exist
            InvalidStateTransitionError: If it is approved or billed
        """
        change_order = await self.get(change_order_id)
        job_id = change_order.job_id
        await require_job_edit(self.authorization, actor_id, job_id)

        async with self.invoice_dao.job_lock(job_id):
            change_order = await self._reload(job_id, change_order_id)
            if change_order.is_billed:
                raise InvalidStateTransitionError(
                    message="Cannot delete a change order that has been billed",
                    change_order_id=change_order_id,
                    invoice_id=change_order.invoice_id,
                )
            if change_order.status == ChangeOrderStatus.APPROVED:
                raise InvalidStateTransitionError(
                    message=(
                        "Cannot delete an approved change order; it is part of "
                        "the job's contract value"
                    ),
                    change_order_id=change_order_id,
                )
            description = change_order.description
            amount = change_order.amount
            await self.change_order_dao.delete(change_order)
            await self.activity_service.record(
                job_id=job_id,
                actor_id=actor_id,
                activity_type=ActivityType.CHANGE_ORDER_DELETED,
                description=f"Deleted change order: {description} ({format_money(amount)})",
                metadata={"change_order_id": change_order_id, "amount": amount},
            )

        logger.info(f"Change order {change_order_id} deleted from job {job_id}")

    # =========================================================================
    # Billing
    # =========================================================================

    async def claim(self, job_id: int, change_order_ids: Sequence[int], invoice_id: int) -> None:
        """
        Mark change orders as billed by an invoice.

        Must run inside the job lock, in the invoice's transaction. A short
        row count means some change order was billed or un-approved after
        it was validated; the ConflictError aborts the whole transaction.

        Raises:
            ConflictError: If any change order could not be claimed
        """
        claimed = await self.change_order_dao.claim(job_id, change_order_ids, invoice_id)
        if claimed != len(change_order_ids):
            logger.warning(
                f"Claimed {claimed} of {len(change_order_ids)} change orders "
                f"for invoice {invoice_id} on job {job_id}"
            )
            raise ConflictError(
                message=(
                    "One or more change orders were already billed or are no longer "
                    "approved. Refresh and try again."
                ),
                job_id=job_id,
                change_order_ids=list(change_order_ids),
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _decide(
        self,
        change_order_id: int,
        actor_id: Optional[int],
        new_status: ChangeOrderStatus,
        suffix: str,
    ) -> ChangeOrder:
        change_order = await self.get(change_order_id)
        job_id = change_order.job_id
        await require_job_edit(self.authorization, actor_id, job_id)

        async with self.invoice_dao.job_lock(job_id):
            change_order = await self._reload(job_id, change_order_id)
            if change_order.status != ChangeOrderStatus.PENDING:
                raise InvalidStateTransitionError(
                    message=(
                        f"Cannot change a {change_order.status.value} change order "
                        f"to {new_status.value}; only pending change orders can be decided"
                    ),
                    change_order_id=change_order_id,
                    current_status=change_order.status.value,
                )
            change_order.status = new_status
            if new_status == ChangeOrderStatus.APPROVED:
                change_order.approved_by = actor_id
                change_order.approved_at = utcnow()
                activity_type = ActivityType.CHANGE_ORDER_APPROVED
                verb = "Approved"
            else:
                activity_type = ActivityType.CHANGE_ORDER_REJECTED
                verb = "Rejected"
            await self.session.flush()
            await self.activity_service.record(
                job_id=job_id,
                actor_id=actor_id,
                activity_type=activity_type,
                description=(
                    f"{verb} change order: {change_order.description} "
                    f"({format_money(change_order.amount)}){suffix}"
                ),
                metadata={"change_order_id": change_order_id, "amount": change_order.amount},
            )

        logger.info(f"Change order {change_order_id} {new_status.value} on job {job_id}")
        return change_order

    async def _reload(self, job_id: int, change_order_id: int) -> ChangeOrder:
        found = await self.change_order_dao.get_many_for_job(job_id, [change_order_id])
        if not found:
            raise ChangeOrderNotFoundError(
                message=f"Change order with id {change_order_id} not found",
                resource_type="ChangeOrder",
                resource_id=change_order_id,
            )
        return found[0]

    async def _require_job(self, job_id: int) -> None:
        if await self.job_dao.get_by_id(job_id) is None:
            raise JobNotFoundError(
                message=f"Job with id {job_id} not found",
                resource_type="Job",
                resource_id=job_id,
            )
