"""
Invoice computation engine.

WHAT: Turns an invoice request plus a ledger snapshot into the invoice's
amounts and line items.

WHY: Each invoice type has its own amount rule:

    deposit     custom amount ("ACV Deposit (Insurance)" / "Materials Deposit")
    progress    custom amount ("Progress Payment")
    supplement  Σ of the named approved, unbilled change orders (one line each)
    final       ceiling - Σ non-cancelled invoice totals ("Final Payment (Balance Due)")

and every type is bounded by the contract ceiling. Keeping the rules in a
pure function means they can be exercised without a database and the
service only has to feed it rows read under the job lock.

HOW: ``compute`` validates, then builds an ``InvoiceComputation``. All
amounts are integer cents. It raises instead of returning partial results;
nothing has been written when it fails.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from jobbilling.core.exceptions import (
    ChangeOrderNotFoundError,
    ConflictError,
    ValidationError,
)
from jobbilling.core.money import format_money
from jobbilling.models.change_order import ChangeOrder
from jobbilling.models.invoice import InvoiceType
from jobbilling.models.job import Job
from jobbilling.services.contract_ledger import LedgerSnapshot

INSURANCE_DEPOSIT_LABEL = "ACV Deposit (Insurance)"
DEPOSIT_LABEL = "Materials Deposit"
PROGRESS_LABEL = "Progress Payment"
FINAL_LABEL = "Final Payment (Balance Due)"


# ============================================================================
# Data Classes
# ============================================================================


@dataclass(frozen=True)
class InvoiceRequest:
    """
    What the caller asked for.

    Attributes:
        invoice_type: deposit / progress / supplement / final
        custom_amount: Cents; required for deposit and progress
        change_order_ids: Required (non-empty) for supplement
        tax_amount: Externally computed tax in cents (optional)
    """

    invoice_type: InvoiceType
    custom_amount: Optional[int] = None
    change_order_ids: Tuple[int, ...] = ()
    tax_amount: Optional[int] = None

    @property
    def unique_change_order_ids(self) -> List[int]:
        """Requested ids with duplicates removed, first occurrence kept."""
        return list(dict.fromkeys(self.change_order_ids))


@dataclass(frozen=True)
class LineItemDraft:
    description: str
    amount: int
    change_order_id: Optional[int] = None


@dataclass(frozen=True)
class InvoiceComputation:
    """
    Computed invoice, ready to persist.

    Attributes:
        amount: Pre-tax amount in cents
        tax_amount: Tax in cents
        total_amount: amount + tax_amount
        line_items: Line items in display order
        change_order_ids: Change orders the invoice will claim
    """

    amount: int
    tax_amount: int
    total_amount: int
    line_items: List[LineItemDraft] = field(default_factory=list)
    change_order_ids: List[int] = field(default_factory=list)


# ============================================================================
# Computation
# ============================================================================


def compute(
    request: InvoiceRequest,
    job: Job,
    snapshot: LedgerSnapshot,
    change_orders: Iterable[ChangeOrder] = (),
) -> InvoiceComputation:
    """
    Compute an invoice.

    Args:
        request: The invoice request
        job: The locked job
        snapshot: Ledger snapshot read under the job lock
        change_orders: For supplements, the requested change orders as
            loaded from the job (any status)

    Returns:
        InvoiceComputation

    Raises:
        ValidationError: Missing/invalid input, no remaining balance, or
            the invoice would exceed the contract ceiling
        ChangeOrderNotFoundError: Requested change orders not on the job
        ConflictError: Requested change orders not approved-and-unbilled
    """
    tax = _validated_tax(request.tax_amount)

    if request.invoice_type in (InvoiceType.DEPOSIT, InvoiceType.PROGRESS):
        computation = _custom_amount_invoice(request, job, tax)
    elif request.invoice_type == InvoiceType.SUPPLEMENT:
        computation = _supplement_invoice(request, change_orders, tax)
    elif request.invoice_type == InvoiceType.FINAL:
        computation = _final_invoice(snapshot, tax)
    else:
        raise ValidationError(
            message=f"Unsupported invoice type: {request.invoice_type}",
            invoice_type=str(request.invoice_type),
        )

    _check_ceiling(snapshot, computation.total_amount)
    return computation


def _validated_tax(tax_amount: Optional[int]) -> int:
    if tax_amount is None:
        return 0
    if tax_amount < 0:
        raise ValidationError(
            message="taxAmount cannot be negative",
            tax_amount=tax_amount,
        )
    return tax_amount


def _custom_amount_invoice(request: InvoiceRequest, job: Job, tax: int) -> InvoiceComputation:
    type_name = request.invoice_type.value
    if request.custom_amount is None:
        raise ValidationError(
            message=f"customAmount is required for {type_name} invoices",
            invoice_type=type_name,
        )
    if request.custom_amount <= 0:
        raise ValidationError(
            message=f"customAmount must be greater than zero for {type_name} invoices",
            invoice_type=type_name,
            custom_amount=request.custom_amount,
        )

    if request.invoice_type == InvoiceType.DEPOSIT:
        label = INSURANCE_DEPOSIT_LABEL if job.is_insurance else DEPOSIT_LABEL
    else:
        label = PROGRESS_LABEL

    amount = request.custom_amount
    return InvoiceComputation(
        amount=amount,
        tax_amount=tax,
        total_amount=amount + tax,
        line_items=[LineItemDraft(description=label, amount=amount)],
    )


def _supplement_invoice(
    request: InvoiceRequest,
    change_orders: Iterable[ChangeOrder],
    tax: int,
) -> InvoiceComputation:
    requested = request.unique_change_order_ids
    if not requested:
        raise ValidationError(
            message="changeOrderIds is required for supplement invoices",
            invoice_type=InvoiceType.SUPPLEMENT.value,
        )

    by_id: Dict[int, ChangeOrder] = {co.id: co for co in change_orders}
    missing = [co_id for co_id in requested if co_id not in by_id]
    if missing:
        raise ChangeOrderNotFoundError(
            message=f"Change orders not found on this job: {missing}",
            change_order_ids=missing,
        )

    unbillable = [co_id for co_id in requested if not by_id[co_id].is_billable]
    if unbillable:
        raise ConflictError(
            message=(
                f"Change orders {unbillable} are not approved or have already "
                "been billed"
            ),
            change_order_ids=unbillable,
        )

    selected = [by_id[co_id] for co_id in requested]
    amount = sum(co.amount for co in selected)
    return InvoiceComputation(
        amount=amount,
        tax_amount=tax,
        total_amount=amount + tax,
        line_items=[
            LineItemDraft(description=co.description, amount=co.amount, change_order_id=co.id)
            for co in selected
        ],
        change_order_ids=requested,
    )


def _final_invoice(snapshot: LedgerSnapshot, tax: int) -> InvoiceComputation:
    balance = snapshot.remaining_balance
    if balance <= 0:
        raise ValidationError(
            message=(
                f"No remaining balance. Total contract: {format_money(snapshot.contract_ceiling)}, "
                f"Already invoiced: {format_money(snapshot.invoiced_total)}"
            ),
            contract_ceiling=snapshot.contract_ceiling,
            invoiced_total=snapshot.invoiced_total,
        )
    # The balance due is fixed; supplied tax is part of it, not on top.
    if tax > balance:
        raise ValidationError(
            message=(
                f"taxAmount {format_money(tax)} exceeds the remaining balance "
                f"of {format_money(balance)}"
            ),
            tax_amount=tax,
            remaining_balance=balance,
        )
    amount = balance - tax
    return InvoiceComputation(
        amount=amount,
        tax_amount=tax,
        total_amount=balance,
        line_items=[LineItemDraft(description=FINAL_LABEL, amount=amount)],
    )


def _check_ceiling(snapshot: LedgerSnapshot, requested_total: int) -> None:
    if snapshot.invoiced_total + requested_total > snapshot.contract_ceiling:
        remaining = max(0, snapshot.remaining_balance)
        raise ValidationError(
            message=(
                f"Invoice total {format_money(requested_total)} exceeds the remaining "
                f"contract balance of {format_money(remaining)}. "
                f"Total contract: {format_money(snapshot.contract_ceiling)}, "
                f"Already invoiced: {format_money(snapshot.invoiced_total)}"
            ),
            contract_ceiling=snapshot.contract_ceiling,
            invoiced_total=snapshot.invoiced_total,
            requested_total=requested_total,
        )
