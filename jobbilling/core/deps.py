"""
FastAPI dependencies for caller identity, authorization and services.

WHY: Dependencies keep route handlers thin and let tests swap the
authorization check or the document pipeline through
``app.dependency_overrides``.

Authentication happens at the upstream gateway, which forwards the acting
user's id in the ``X-Actor-Id`` header.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from jobbilling.core.exceptions import ValidationError
from jobbilling.db.session import get_db
from jobbilling.services.authorization import AllowAllAuthorization, AuthorizationCheck
from jobbilling.services.change_order_registry import ChangeOrderRegistry
from jobbilling.services.document_emitter import InvoiceDocumentEmitter
from jobbilling.services.invoice_service import InvoiceService
from jobbilling.services.job_service import JobService


async def get_actor_id(
    x_actor_id: Optional[str] = Header(default=None, alias="X-Actor-Id"),
) -> Optional[int]:
    """
    Acting user id forwarded by the gateway.

    Returns:
        User id, or None for system callers

    Raises:
        ValidationError: If the header is not an integer
    """
    if x_actor_id is None or not x_actor_id.strip():
        return None
    try:
        return int(x_actor_id)
    except ValueError as e:
        raise ValidationError(
            message="X-Actor-Id header must be an integer user id",
            header="X-Actor-Id",
        ) from e


def get_authorization() -> AuthorizationCheck:
    """
    Job edit check used by the billing services.

    Host applications override this dependency with their own rules.
    """
    return AllowAllAuthorization()


def get_document_emitter(db: AsyncSession = Depends(get_db)) -> InvoiceDocumentEmitter:
    return InvoiceDocumentEmitter(db)


def get_invoice_service(
    db: AsyncSession = Depends(get_db),
    authorization: AuthorizationCheck = Depends(get_authorization),
    document_emitter: InvoiceDocumentEmitter = Depends(get_document_emitter),
) -> InvoiceService:
    return InvoiceService(db, authorization=authorization, document_emitter=document_emitter)


def get_change_order_registry(
    db: AsyncSession = Depends(get_db),
    authorization: AuthorizationCheck = Depends(get_authorization),
) -> ChangeOrderRegistry:
    return ChangeOrderRegistry(db, authorization=authorization)


def get_job_service(
    db: AsyncSession = Depends(get_db),
    authorization: AuthorizationCheck = Depends(get_authorization),
) -> JobService:
    return JobService(db, authorization=authorization)
