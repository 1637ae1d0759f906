"""
Job edit authorization.

WHAT: The check the billing services run before touching a job's ledger.

WHY: Permission rules belong to the surrounding CRM (roles, crews,
territories). Billing only needs a yes/no answer, so it depends on a small
protocol that the host application implements.
"""

from typing import Optional, Protocol, runtime_checkable

from jobbilling.core.exceptions import AuthorizationError


@runtime_checkable
class AuthorizationCheck(Protocol):
    """Answers whether a user may edit a job's billing."""

    async def can_edit_job(self, user_id: Optional[int], job_id: int) -> bool:
        ...


class AllowAllAuthorization:
    """Default check: every caller may edit every job."""

    async def can_edit_job(self, user_id: Optional[int], job_id: int) -> bool:
        return True


async def require_job_edit(
    authorization: AuthorizationCheck,
    user_id: Optional[int],
    job_id: int,
) -> None:
    """
    Raise AuthorizationError unless the user may edit the job.

    Raises:
        AuthorizationError: If the check denies access
    """
    if not await authorization.can_edit_job(user_id, job_id):
        raise AuthorizationError(
            message=f"You do not have permission to edit billing for job {job_id}",
            job_id=job_id,
            user_id=user_id,
        )
