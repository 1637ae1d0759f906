"""
Change order schemas for API request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from jobbilling.models.change_order import ChangeOrderStatus, ChangeOrderType
from jobbilling.schemas.money import MoneyIn, MoneyOut


class ChangeOrderCreate(BaseModel):
    """Schema for submitting a change order (starts pending)."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    change_type: ChangeOrderType = Field(default=ChangeOrderType.SUPPLEMENT)
    description: str = Field(..., min_length=1, max_length=5000)
    amount: MoneyIn = Field(..., description="Amount in dollars, greater than zero")


class ChangeOrderApprove(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)


class ChangeOrderReject(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=2000)


class ChangeOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    change_type: ChangeOrderType
    description: str
    amount: MoneyOut
    status: ChangeOrderStatus
    invoice_id: Optional[int]
    is_billed: bool
    approved_by: Optional[int]
    approved_at: Optional[datetime]
    created_by: Optional[int]
    created_at: datetime


class ChangeOrderSummaryResponse(BaseModel):
    """Totals in dollars and counts per status."""

    model_config = ConfigDict(from_attributes=True)

    total_approved: MoneyOut
    total_pending: MoneyOut
    total_billed: MoneyOut
    total_unbilled: MoneyOut
    approved_count: int
    pending_count: int
    rejected_count: int
