"""
Job model.

WHAT: SQLAlchemy model for a roofing job (the CRM's project record) as seen
by the billing engine.

WHY: The job carries the signed contract value that, together with approved
change orders, bounds everything that may ever be invoiced for it. The job
row is also the lock target that serializes invoice creation per job.

HOW: Money columns hold integer cents. ``base_contract_value`` is nullable:
NULL means the contract value was never recorded (legacy jobs), which the
contract ledger handles through its compatibility policy.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, Integer, String, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from jobbilling.models.base import Base, TimestampMixin


class DealType(str, Enum):
    """
    How the job is being paid for.

    WHY: Insurance jobs bill the carrier's Actual Cash Value as the deposit,
    which changes the deposit line item wording.
    """

    INSURANCE = "insurance"
    CASH = "cash"
    FINANCED = "financed"


class Job(Base, TimestampMixin):
    """
    Roofing job subject to billing.

    Attributes:
        id: Primary key
        customer_name: Name printed on invoices ("Bill To")
        address: Job site address
        email: Customer email for invoice delivery
        deal_type: insurance / cash / financed (nullable)
        base_contract_value: Signed contract value in cents (NULL = unset)
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    deal_type: Mapped[Optional[DealType]] = mapped_column(
        SQLEnum(
            DealType,
            name="deal_type",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=True,
    )
    base_contract_value: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
        comment="Signed contract value in cents (NULL when never recorded)",
    )

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, customer={self.customer_name!r})>"

    @property
    def is_insurance(self) -> bool:
        return self.deal_type == DealType.INSURANCE
