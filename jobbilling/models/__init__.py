"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from jobbilling.models.base import Base, TimestampMixin
from jobbilling.models.job import Job, DealType
from jobbilling.models.change_order import ChangeOrder, ChangeOrderStatus, ChangeOrderType
from jobbilling.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus, InvoiceType
from jobbilling.models.activity import JobActivity, ActivityType

__all__ = [
    "Base",
    "TimestampMixin",
    "Job",
    "DealType",
    "ChangeOrder",
    "ChangeOrderStatus",
    "ChangeOrderType",
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "InvoiceType",
    "JobActivity",
    "ActivityType",
]
