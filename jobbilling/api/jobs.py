"""
Job API endpoints.

WHAT: Job registration, contract value, billing summary and timeline.

WHY: The billing tab needs one call that answers "what is this job worth,
what has been billed, and what is left", plus a way to record the signed
contract value once it is known.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from jobbilling.core.deps import get_actor_id, get_invoice_service, get_job_service
from jobbilling.schemas.activity import JobActivityListResponse, JobActivityResponse
from jobbilling.schemas.job import (
    BillingSummaryResponse,
    ContractValueUpdate,
    JobCreate,
    JobResponse,
)
from jobbilling.services.invoice_service import InvoiceService
from jobbilling.services.job_service import JobService


router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(
    data: JobCreate,
    service: JobService = Depends(get_job_service),
) -> JobResponse:
    job = await service.create_job(
        customer_name=data.customer_name,
        address=data.address,
        email=data.email,
        deal_type=data.deal_type,
        base_contract_value=data.base_contract_value,
    )
    return JobResponse.model_validate(job)


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: int,
    service: JobService = Depends(get_job_service),
) -> JobResponse:
    return JobResponse.model_validate(await service.get_job(job_id))


@router.patch(
    "/{job_id}/contract-value",
    response_model=JobResponse,
    summary="Set contract value",
    description="Rejected if the resulting ceiling would be below what is already invoiced",
)
async def update_contract_value(
    job_id: int,
    data: ContractValueUpdate,
    actor_id: Optional[int] = Depends(get_actor_id),
    service: JobService = Depends(get_job_service),
) -> JobResponse:
    job = await service.update_contract_value(job_id, data.base_contract_value, actor_id)
    return JobResponse.model_validate(job)


@router.get("/{job_id}/billing-summary", response_model=BillingSummaryResponse)
async def billing_summary(
    job_id: int,
    service: InvoiceService = Depends(get_invoice_service),
) -> BillingSummaryResponse:
    return BillingSummaryResponse.model_validate(await service.billing_summary(job_id))


@router.get("/{job_id}/activities", response_model=JobActivityListResponse)
async def list_job_activities(
    job_id: int,
    limit: int = Query(default=100, ge=1, le=500),
    service: JobService = Depends(get_job_service),
) -> JobActivityListResponse:
    activities = await service.list_activities(job_id, limit=limit)
    return JobActivityListResponse(
        items=[JobActivityResponse.model_validate(a) for a in activities],
        total=len(activities),
    )
