"""
Job schemas for API request/response validation.

WHAT: Job registration, contract value updates and the billing summary.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from jobbilling.models.job import DealType
from jobbilling.schemas.change_order import ChangeOrderResponse, ChangeOrderSummaryResponse
from jobbilling.schemas.invoice import InvoiceResponse
from jobbilling.schemas.money import MoneyIn, MoneyOut


class JobCreate(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    customer_name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = Field(default=None, max_length=2000)
    email: Optional[EmailStr] = None
    deal_type: Optional[DealType] = None
    base_contract_value: Optional[MoneyIn] = Field(
        default=None,
        description="Signed contract value in dollars (omit if unknown)",
    )


class ContractValueUpdate(BaseModel):
    """``null`` clears the contract value."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    base_contract_value: Optional[MoneyIn] = Field(...)


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_name: str
    address: Optional[str]
    email: Optional[str]
    deal_type: Optional[DealType]
    base_contract_value: Optional[MoneyOut]
    created_at: datetime
    updated_at: datetime


class LedgerResponse(BaseModel):
    """
    The job's contract position.

    ``remaining_balance`` is what a final invoice would bill right now.
    """

    model_config = ConfigDict(from_attributes=True)

    base_contract_value: MoneyOut
    approved_changes_total: MoneyOut
    contract_ceiling: MoneyOut
    invoiced_total: MoneyOut
    remaining_balance: MoneyOut
    is_legacy_ceiling: bool


class BillingSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job: JobResponse
    ledger: LedgerResponse
    invoices: List[InvoiceResponse]
    unbilled_change_orders: List[ChangeOrderResponse]
    change_orders: ChangeOrderSummaryResponse
