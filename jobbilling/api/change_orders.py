"""
Change order API endpoints.

WHAT: Submit, decide, list and delete change orders on a job.

WHY: Approved change orders raise the job's contract ceiling and become
billable on a supplement invoice.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status

from jobbilling.core.deps import get_actor_id, get_change_order_registry
from jobbilling.schemas.change_order import (
    ChangeOrderApprove,
    ChangeOrderCreate,
    ChangeOrderReject,
    ChangeOrderResponse,
    ChangeOrderSummaryResponse,
)
from jobbilling.services.change_order_registry import ChangeOrderRegistry


job_change_orders_router = APIRouter(prefix="/jobs/{job_id}/change-orders", tags=["change-orders"])
router = APIRouter(prefix="/change-orders", tags=["change-orders"])


@job_change_orders_router.get("", response_model=List[ChangeOrderResponse])
async def list_change_orders(
    job_id: int,
    registry: ChangeOrderRegistry = Depends(get_change_order_registry),
) -> List[ChangeOrderResponse]:
    change_orders = await registry.list_for_job(job_id)
    return [ChangeOrderResponse.model_validate(co) for co in change_orders]


@job_change_orders_router.post(
    "",
    response_model=ChangeOrderResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_change_order(
    job_id: int,
    data: ChangeOrderCreate,
    actor_id: Optional[int] = Depends(get_actor_id),
    registry: ChangeOrderRegistry = Depends(get_change_order_registry),
) -> ChangeOrderResponse:
    change_order = await registry.create(
        job_id=job_id,
        description=data.description,
        amount=data.amount,
        actor_id=actor_id,
        change_type=data.change_type,
    )
    return ChangeOrderResponse.model_validate(change_order)


@job_change_orders_router.get(
    "/unbilled",
    response_model=List[ChangeOrderResponse],
    summary="Approved change orders not yet invoiced",
)
async def list_unbilled_change_orders(
    job_id: int,
    registry: ChangeOrderRegistry = Depends(get_change_order_registry),
) -> List[ChangeOrderResponse]:
    change_orders = await registry.approved_unbilled(job_id)
    return [ChangeOrderResponse.model_validate(co) for co in change_orders]


@job_change_orders_router.get("/summary", response_model=ChangeOrderSummaryResponse)
async def change_order_summary(
    job_id: int,
    registry: ChangeOrderRegistry = Depends(get_change_order_registry),
) -> ChangeOrderSummaryResponse:
    return ChangeOrderSummaryResponse.model_validate(await registry.summary(job_id))


@router.post("/{change_order_id}/approve", response_model=ChangeOrderResponse)
async def approve_change_order(
    change_order_id: int,
    data: Optional[ChangeOrderApprove] = None,
    actor_id: Optional[int] = Depends(get_actor_id),
    registry: ChangeOrderRegistry = Depends(get_change_order_registry),
) -> ChangeOrderResponse:
    change_order = await registry.approve(
        change_order_id,
        actor_id,
        notes=data.notes if data else None,
    )
    return ChangeOrderResponse.model_validate(change_order)


@router.post("/{change_order_id}/reject", response_model=ChangeOrderResponse)
async def reject_change_order(
    change_order_id: int,
    data: Optional[ChangeOrderReject] = None,
    actor_id: Optional[int] = Depends(get_actor_id),
    registry: ChangeOrderRegistry = Depends(get_change_order_registry),
) -> ChangeOrderResponse:
    change_order = await registry.reject(
        change_order_id,
        actor_id,
        reason=data.reason if data else None,
    )
    return ChangeOrderResponse.model_validate(change_order)


@router.delete("/{change_order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_change_order(
    change_order_id: int,
    actor_id: Optional[int] = Depends(get_actor_id),
    registry: ChangeOrderRegistry = Depends(get_change_order_registry),
) -> None:
    await registry.delete(change_order_id, actor_id)
