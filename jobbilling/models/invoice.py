"""
Invoice models for job billing.

WHAT: SQLAlchemy models for invoices issued against a job and their line items.

WHY: Invoices are the legal billing record of a job:
1. Track what has been billed against the contract ceiling
2. Carry the per-job sequence that forms the invoice number
3. Link supplement line items back to the change orders they bill
4. Reference the rendered PDF once it exists

HOW: Uses SQLAlchemy 2.0 with:
- Job foreign key (many invoices per job)
- Integer cent amounts (amount + tax_amount = total_amount)
- Unique (job_id, sequence_number) as the storage backstop for numbering
- String-backed enums for status and invoice type
"""

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    BigInteger,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jobbilling.core.money import from_cents
from jobbilling.models.base import Base, TimestampMixin, utcnow


class InvoiceStatus(str, Enum):
    """
    Invoice payment workflow status.

    WHY: Tracks invoice through the billing process:
    - DRAFT: Created, not yet sent to the customer
    - SENT: Emailed to the customer
    - PAID: Payment confirmed
    - OVERDUE: Stored only when set by an upstream process; normally
      derived from due_date for display (see ``display_status``)
    - CANCELLED: Voided; excluded from billed totals but keeps its number
    """

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoiceType(str, Enum):
    """
    Invoice category, each with its own amount rule.

    - DEPOSIT: Caller-supplied amount (ACV for insurance jobs)
    - PROGRESS: Caller-supplied amount
    - SUPPLEMENT: Sum of the named approved, unbilled change orders
    - FINAL: Contract ceiling minus everything already billed
    """

    DEPOSIT = "deposit"
    PROGRESS = "progress"
    SUPPLEMENT = "supplement"
    FINAL = "final"


class Invoice(Base, TimestampMixin):
    """
    Invoice issued against a job.

    Attributes:
        id: Primary key
        job_id: Billed job
        invoice_number: Human-readable number, INV-{job_id}-{sequence:02d}
        invoice_type: deposit / progress / supplement / final
        sequence_number: Per-job sequence (cancelled invoices keep theirs)
        amount: Pre-tax amount in cents
        tax_amount: Externally supplied tax in cents (never computed here)
        total_amount: amount + tax_amount, the figure counted against the ceiling
        status: Current status
        invoice_date: Issue date
        due_date: Payment due date
        paid_date: When payment was confirmed
        notes: Free-text notes printed on the invoice
        document_url: Location of the rendered PDF (NULL until rendered)
        created_by: Acting user id
    """

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("job_id", "sequence_number", name="uq_invoices_job_sequence"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    job_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    invoice_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Invoice number (e.g., INV-42-03)",
    )
    invoice_type: Mapped[InvoiceType] = mapped_column(
        SQLEnum(
            InvoiceType,
            name="invoice_type",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        index=True,
    )
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    tax_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(
            InvoiceStatus,
            name="invoice_status",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=InvoiceStatus.DRAFT,
        index=True,
    )

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    paid_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    document_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    line_items: Mapped[List["InvoiceLineItem"]] = relationship(
        "InvoiceLineItem",
        order_by="InvoiceLineItem.sort_order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number={self.invoice_number}, status={self.status})>"

    @property
    def is_cancelled(self) -> bool:
        return self.status == InvoiceStatus.CANCELLED

    @property
    def is_overdue(self) -> bool:
        """
        Check if invoice is past due date.

        WHY: Overdue is a display concern derived from the due date; it is
        not a guarded transition in the billing engine.

        Returns:
            True if due_date has passed and invoice isn't paid/cancelled
        """
        if self.status == InvoiceStatus.OVERDUE:
            return True
        if not self.due_date:
            return False
        if self.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            return False
        return date.today() > self.due_date

    @property
    def display_status(self) -> InvoiceStatus:
        return InvoiceStatus.OVERDUE if self.is_overdue else self.status

    @property
    def total_decimal(self) -> Decimal:
        return from_cents(self.total_amount)

    def mark_sent(self) -> None:
        self.status = InvoiceStatus.SENT
        self.sent_at = utcnow()


class InvoiceLineItem(Base):
    """
    Line item on an invoice.

    WHY: Normalized line items allow reporting on what was billed and, via
    ``change_order_id``, prove which change orders a supplement invoice
    covered.

    Attributes:
        id: Primary key
        invoice_id: Owning invoice
        description: Printed description
        quantity: Always 1 for billing-engine generated items
        unit_price: Cents
        total_price: Cents
        change_order_id: Billed change order (supplement items only)
        sort_order: Display order, starting at 0
    """

    __tablename__ = "invoice_line_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    invoice_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    change_order_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("change_orders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<InvoiceLineItem(invoice_id={self.invoice_id}, description={self.description!r})>"
