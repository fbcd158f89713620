"""Per-panel serialization of mutating workflow operations."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class PanelLocks:
    """Hands out one :class:`asyncio.Lock` per panel id.

    Operations on the same panel run one at a time; different panels never
    wait on each other. A panel's lock is dropped once its last holder or
    waiter leaves, so only panels with an operation in flight are tracked.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}
        self._guard = asyncio.Lock()

    async def _acquire_slot(self, panel_id: str) -> asyncio.Lock:
        async with self._guard:
            lock = self._locks.get(panel_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[panel_id] = lock
            self._users[panel_id] = self._users.get(panel_id, 0) + 1
            return lock

    def _release_slot(self, panel_id: str) -> None:
        remaining = self._users[panel_id] - 1
        if remaining:
            self._users[panel_id] = remaining
            return
        del self._users[panel_id]
        del self._locks[panel_id]
        logger.debug(f"Dropped idle lock for panel_id={panel_id}")

    @asynccontextmanager
    async def hold(self, panel_id: str) -> AsyncIterator[None]:
        lock = await self._acquire_slot(panel_id)
        try:
            async with lock:
                logger.debug(f"Acquired lock for panel_id={panel_id}")
                try:
                    yield
                finally:
                    logger.debug(f"Released lock for panel_id={panel_id}")
        finally:
            self._release_slot(panel_id)

    def is_locked(self, panel_id: str) -> bool:
        lock = self._locks.get(panel_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
