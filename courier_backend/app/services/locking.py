"""
Entity locking service.

Serializes mutating commands per entity inside one process. Combined with
the version columns on Parcel and Rider (which catch writers in other
processes), this keeps "assign rider" and "advance status" on the same
parcel from interleaving.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional, Tuple

from courier_backend.app.core.config import settings
from courier_backend.app.core.exceptions import ConflictError

logger = logging.getLogger(__name__)

LockKey = Tuple[str, str]


class EntityLockRegistry:
    """
    Registry of asyncio locks keyed by (entity_type, entity_id).

    Locks are created on demand and dropped once nobody holds or waits for
    them. Acquisition is bounded by a timeout; a timed-out wait raises
    ConflictError so callers fail fast instead of queueing forever.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds
        self._locks: Dict[LockKey, asyncio.Lock] = {}
        self._waiters: Dict[LockKey, int] = {}

    def _timeout(self) -> float:
        if self.timeout_seconds is not None:
            return self.timeout_seconds
        return settings.lock_timeout_seconds

    async def _acquire(self, key: LockKey) -> asyncio.Lock:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._timeout())
        except asyncio.TimeoutError:
            self._release_slot(key)
            logger.warning("Lock wait timed out for %s:%s", *key)
            raise ConflictError(
                f"{key[0].capitalize()} {key[1]} is busy, retry the command",
                details={"entity_type": key[0], "entity_id": key[1]}
            )
        return lock

    def _release_slot(self, key: LockKey):
        remaining = self._waiters.get(key, 1) - 1
        if remaining <= 0:
            self._waiters.pop(key, None)
            self._locks.pop(key, None)
        else:
            self._waiters[key] = remaining

    @asynccontextmanager
    async def hold(self, *keys: LockKey):
        """
        Hold the locks for all given keys.

        Keys are acquired in sorted order so two commands touching the same
        entities can never deadlock each other.
        """
        ordered = sorted(set(k for k in keys if k[1] is not None))
        acquired = []
        try:
            for key in ordered:
                lock = await self._acquire(key)
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._release_slot(key)

    def is_locked(self, entity_type: str, entity_id: str) -> bool:
        lock = self._locks.get((entity_type, entity_id))
        return lock is not None and lock.locked()


def parcel_key(parcel_id: str) -> LockKey:
    return ("parcel", parcel_id)


def rider_key(rider_id: Optional[str]) -> LockKey:
    return ("rider", rider_id)


entity_locks = EntityLockRegistry()
