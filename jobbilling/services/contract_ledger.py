"""
Contract ledger.

WHAT: Derives a job's contract ceiling, what has been invoiced against it,
and the remaining balance.

WHY: Every invoice type is bounded by the same ceiling:

    ceiling = base contract value + Σ approved change orders
    Σ non-cancelled invoice totals <= ceiling

Jobs imported from the previous CRM often have no recorded contract value
but do have invoices. For those the ceiling is inferred from what was
invoiced; that policy lives in exactly one function,
``resolve_contract_ceiling``, so it can be tested and eventually removed
on its own.

HOW: Pure functions over integer cents. The snapshot is computed from rows
the caller loaded inside the job lock; nothing here touches the database.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from jobbilling.models.change_order import ChangeOrder, ChangeOrderStatus
from jobbilling.models.invoice import Invoice
from jobbilling.models.job import Job


@dataclass(frozen=True)
class LedgerSnapshot:
    """
    Point-in-time view of a job's billing position, all amounts in cents.

    Attributes:
        base_contract_value: Signed value (0 when never recorded)
        approved_changes_total: Σ approved change orders, billed or not
        contract_ceiling: Upper bound on Σ non-cancelled invoice totals
        invoiced_total: Σ non-cancelled invoice totals
        remaining_balance: contract_ceiling - invoiced_total (may be negative
            for legacy jobs that were over-invoiced)
    """

    base_contract_value: int
    approved_changes_total: int
    contract_ceiling: int
    invoiced_total: int
    remaining_balance: int

    @property
    def is_legacy_ceiling(self) -> bool:
        return self.base_contract_value == 0 and self.invoiced_total > 0


def approved_changes_total(change_orders: Iterable[ChangeOrder]) -> int:
    return sum(co.amount for co in change_orders if co.status == ChangeOrderStatus.APPROVED)


def compute_contract_value(job: Job, approved_change_orders: Iterable[ChangeOrder]) -> int:
    """
    Base contract value plus approved change orders.

    Args:
        job: Job (base_contract_value may be NULL)
        approved_change_orders: Change orders to include; non-approved
            entries are ignored

    Returns:
        Contract value in cents
    """
    return (job.base_contract_value or 0) + approved_changes_total(approved_change_orders)


def resolve_contract_ceiling(
    base_contract_value: Optional[int],
    approved_changes_total: int,
    already_invoiced_total: int,
) -> int:
    """
    Ceiling used to bound invoicing, with the legacy fallback.

    When the base contract value is unset (NULL or 0) and the job already
    has invoices, the invoiced amount stands in for the unknown base:
    ``max(0, invoiced) + approved changes``. Such a job can only be billed
    further once new change orders are approved. Otherwise the ceiling is
    ``base + approved changes``.

    The legacy rule counts every approved change order, billed ones
    included, even though a billed one is already inside the invoiced
    amount. After a supplement bills a change order, the same amount opens
    up again as balance ($4,000 invoiced, $500 change order billed: the
    ceiling is $5,000 against $4,500 invoiced). This matches the CRM's
    existing ceiling and is kept for compatibility with jobs already
    billed under it.

    Args:
        base_contract_value: Recorded base in cents, or None
        approved_changes_total: Σ approved change orders in cents
        already_invoiced_total: Σ non-cancelled invoice totals in cents

    Returns:
        Ceiling in cents
    """
    if not base_contract_value and already_invoiced_total > 0:
        return max(0, already_invoiced_total) + approved_changes_total
    return (base_contract_value or 0) + approved_changes_total


def invoiced_total(invoices: Iterable[Invoice]) -> int:
    """Σ totals of non-cancelled invoices."""
    return sum(inv.total_amount for inv in invoices if not inv.is_cancelled)


class ContractLedger:
    """
    Read model shared by the invoice engine and the billing summary.

    WHY: One place computes the numbers that both the rules and the
    reports show, so they can never disagree.
    """

    @staticmethod
    def snapshot(
        job: Job,
        approved_change_orders: Iterable[ChangeOrder],
        billed_invoices: Iterable[Invoice],
    ) -> LedgerSnapshot:
        """
        Build a snapshot from rows loaded under the job lock.

        Args:
            job: The job
            approved_change_orders: Approved change orders on the job
            billed_invoices: The job's invoices (cancelled ones are ignored)

        Returns:
            LedgerSnapshot
        """
        changes = approved_changes_total(approved_change_orders)
        invoiced = invoiced_total(billed_invoices)
        ceiling = resolve_contract_ceiling(job.base_contract_value, changes, invoiced)
        return LedgerSnapshot(
            base_contract_value=job.base_contract_value or 0,
            approved_changes_total=changes,
            contract_ceiling=ceiling,
            invoiced_total=invoiced,
            remaining_balance=ceiling - invoiced,
        )
