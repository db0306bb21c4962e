"""Per-stack mutual exclusion for provisioning runs."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class StackLockRegistry:
    """Map stack names to ``asyncio.Lock`` instances.

    ``asyncio.Lock`` wakes waiters in arrival order, so contention on one name
    cannot starve a caller and applies for a name follow acquisition order.
    Locks for distinct names are independent. A lock is dropped from the map
    once it has no holder and no waiters.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    def locked(self, stack_name: str) -> bool:
        lock = self._locks.get(stack_name)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, stack_name: str) -> AsyncIterator[None]:
        """Hold the lock for ``stack_name`` for the duration of the block."""
        lock = self._locks.setdefault(stack_name, asyncio.Lock())
        self._waiters[stack_name] = self._waiters.get(stack_name, 0) + 1
        try:
            if lock.locked():
                logger.info("Waiting for in-flight provisioning on %s", stack_name)
            await lock.acquire()
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[stack_name] -= 1
            if not self._waiters[stack_name]:
                del self._waiters[stack_name]
                if not lock.locked():
                    self._locks.pop(stack_name, None)


__all__ = ["StackLockRegistry"]
