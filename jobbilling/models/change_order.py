"""
Change order model.

WHAT: SQLAlchemy model for scope added to a job after the contract was
signed (insurance supplements, retail change requests).

WHY: Approved change orders raise the job's contract ceiling, and each one
may be billed exactly once. ``invoice_id`` records the invoice that billed
it; it is written once by a conditional update and never cleared.

HOW: Amount in integer cents; status is a string-backed enum so the same
schema works on PostgreSQL and SQLite.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from jobbilling.models.base import Base, TimestampMixin


class ChangeOrderStatus(str, Enum):
    """
    Approval workflow for change orders.

    - PENDING: Submitted, not yet counted toward the ceiling
    - APPROVED: Counts toward the ceiling, billable once
    - REJECTED: Never billable
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ChangeOrderType(str, Enum):
    """Origin of the added scope."""

    SUPPLEMENT = "supplement"
    RETAIL_CHANGE = "retail_change"
    INSURANCE_SUPPLEMENT = "insurance_supplement"


class ChangeOrder(Base, TimestampMixin):
    """
    Change order attached to a job.

    Attributes:
        id: Primary key
        job_id: Owning job
        change_type: supplement / retail_change / insurance_supplement
        description: Line item text when billed
        amount: Amount in cents
        status: pending / approved / rejected
        invoice_id: Invoice that billed this change order (NULL until billed)
        approved_by: User who approved it
        approved_at: When it was approved
        created_by: User who submitted it
    """

    __tablename__ = "change_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    job_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    change_type: Mapped[ChangeOrderType] = mapped_column(
        SQLEnum(
            ChangeOrderType,
            name="change_order_type",
            native_enum=False,
            length=30,
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=ChangeOrderType.SUPPLEMENT,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, comment="Amount in cents")
    status: Mapped[ChangeOrderStatus] = mapped_column(
        SQLEnum(
            ChangeOrderStatus,
            name="change_order_status",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=ChangeOrderStatus.PENDING,
        index=True,
    )
    invoice_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("invoices.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
        comment="Invoice that billed this change order",
    )
    approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<ChangeOrder(id={self.id}, job_id={self.job_id}, status={self.status})>"

    @property
    def is_billed(self) -> bool:
        return self.invoice_id is not None

    @property
    def is_billable(self) -> bool:
        """Approved and not yet claimed by any invoice."""
        return self.status == ChangeOrderStatus.APPROVED and self.invoice_id is None
