"""
Job activity model.

WHAT: Timeline entries recorded against a job.

WHY: The CRM shows a per-job timeline. Billing writes an entry whenever an
invoice is created or changes status and whenever a change order moves
through its workflow, so staff can see who billed what and when.

HOW: Entries are inserted in the same transaction as the change they
describe; if the billing change rolls back, so does its timeline entry.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from jobbilling.models.base import Base, utcnow


class ActivityType(str, Enum):
    """Categories of billing timeline entries."""

    INVOICE_CREATED = "invoice.created"
    INVOICE_SENT = "invoice.sent"
    INVOICE_PAID = "invoice.paid"
    INVOICE_CANCELLED = "invoice.cancelled"
    INVOICE_DOCUMENT_GENERATED = "invoice.document_generated"
    CHANGE_ORDER_CREATED = "change_order.created"
    CHANGE_ORDER_APPROVED = "change_order.approved"
    CHANGE_ORDER_REJECTED = "change_order.rejected"
    CHANGE_ORDER_DELETED = "change_order.deleted"
    CONTRACT_VALUE_UPDATED = "job.contract_value_updated"


class JobActivity(Base):
    """
    One timeline entry on a job.

    Attributes:
        id: Primary key
        job_id: Job the entry belongs to
        actor_id: User who performed the action (NULL for system actions)
        activity_type: ActivityType value
        description: Human-readable text shown in the timeline
        extra_data: Structured details (stored in the ``metadata`` column)
        created_at: When it happened
    """

    __tablename__ = "job_activities"
    __table_args__ = (
        Index("ix_job_activities_job_created", "job_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    job_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    actor_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    extra_data: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<JobActivity(job_id={self.job_id}, type={self.activity_type})>"
