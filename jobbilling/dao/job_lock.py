"""
Per-job critical sections.

WHAT: An in-process registry of ``asyncio.Lock`` objects keyed by job id.

WHY: Invoice numbering (count-then-insert) and change order claiming
(check-then-update) must both read the snapshot their write commits
against. Holding one lock per job for the whole read-compute-write-commit
sequence gives that guarantee inside a worker; the job row lock taken under
it extends the guarantee across workers on PostgreSQL. Different jobs never
contend: there is no global lock or shared counter.

HOW: Locks are created on first use and discarded when the last holder or
waiter leaves, so the registry only contains jobs currently being billed.
"""

from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict
import asyncio


class JobLockRegistry:
    """Lazily created, reference-counted asyncio locks keyed by job id."""

    def __init__(self) -> None:
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, job_id: int) -> AsyncIterator[None]:
        lock = self._locks.get(job_id)
        if lock is None:
            lock = self._locks[job_id] = asyncio.Lock()
        self._users[job_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[job_id] -= 1
            if self._users[job_id] == 0:
                del self._users[job_id]
                del self._locks[job_id]

    def is_locked(self, job_id: int) -> bool:
        lock = self._locks.get(job_id)
        return lock is not None and lock.locked()


# One registry per process; every InvoiceDAO shares it.
job_locks = JobLockRegistry()
