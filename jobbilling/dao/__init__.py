"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from jobbilling.dao.base import BaseDAO
from jobbilling.dao.job import JobDAO
from jobbilling.dao.job_lock import JobLockRegistry, job_locks
from jobbilling.dao.change_order import ChangeOrderDAO
from jobbilling.dao.invoice import InvoiceDAO
from jobbilling.dao.activity import JobActivityDAO

__all__ = [
    "BaseDAO",
    "JobDAO",
    "JobLockRegistry",
    "job_locks",
    "ChangeOrderDAO",
    "InvoiceDAO",
    "JobActivityDAO",
]
