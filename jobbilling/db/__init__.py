"""Database package"""

from jobbilling.db.session import AsyncSessionLocal, engine, get_db
from jobbilling.models.base import Base

__all__ = ["Base", "AsyncSessionLocal", "engine", "get_db"]
