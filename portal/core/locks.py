"""
Per-customer mutual exclusion for invoice generation.

Invoice generation reads a customer's shipment and invoice history, decides
what is still unbilled, then appends one invoice. Two runs for the same
customer (the scheduled job and an admin trigger, say) must not interleave
between the read and the write, or both would bill the same shipment.

Usage:
    async with customer_locks.acquire(customer_id):
        ...  # read -> filter -> write

The registry is process-local. Locks for different customers never block
each other.
"""
import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

logger = logging.getLogger(__name__)


class CustomerLockTimeout(Exception):
    """Raised when a customer lock cannot be acquired in time."""
    pass


class CustomerLockRegistry:
    """Hands out one asyncio.Lock per (scope, customer id)."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _key(self, customer_id, scope: str) -> str:
        return f"{scope}:{customer_id}"

    def is_locked(self, customer_id, scope: str = "invoices") -> bool:
        key = self._key(customer_id, scope)
        return key in self._locks and self._locks[key].locked()

    @asynccontextmanager
    async def acquire(self, customer_id, scope: str = "invoices") -> AsyncIterator[None]:
        key = self._key(customer_id, scope)
        lock = self._locks[key]

        if lock.locked():
            logger.info(f"Waiting for lock {key}")

        try:
            if self.timeout is None:
                await lock.acquire()
            else:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise CustomerLockTimeout(f"Timed out waiting for lock {key}")

        try:
            yield
        finally:
            lock.release()


# Shared registry used by the API triggers and the scheduler
customer_locks = CustomerLockRegistry()
