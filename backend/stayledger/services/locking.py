"""Per-resource mutual exclusion for the reservation critical section."""

import asyncio
import logging
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

from sqlalchemy import Result, Select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.config import settings
from stayledger.database import is_lock_timeout, set_lock_timeout
from stayledger.exceptions import ReservationTimeout

logger = logging.getLogger(__name__)


class ResourceLockRegistry:
    """Keyed ``asyncio.Lock`` registry with bounded acquisition.

    A key's lock exists only while some coroutine holds or awaits it, so the
    registry never accumulates an entry per resource ever booked.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: Hashable, timeout: float | None = None) -> AsyncIterator[None]:
        """Enter the critical section for ``key``.

        Raises:
            ReservationTimeout: If the lock is not acquired within ``timeout``
                seconds (``settings.reservation_lock_timeout_seconds`` by default).
        """
        if timeout is None:
            timeout = settings.reservation_lock_timeout_seconds

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Timed out after %.2fs waiting for reservation lock on %s", timeout, key)
                raise ReservationTimeout(
                    "The resource is busy with another reservation, please retry",
                    {"resource": str(key), "timeout_seconds": timeout},
                ) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


resource_locks = ResourceLockRegistry()


async def select_for_update(db: AsyncSession, query: Select, timeout: float | None = None) -> Result:
    """Run ``query`` as ``SELECT ... FOR UPDATE`` with a bounded wait.

    The bound covers the rest of the transaction on PostgreSQL; dialects
    without row locks run the query unchanged.

    Raises:
        ReservationTimeout: If another transaction keeps the row locked for
            longer than ``timeout`` seconds.
    """
    if timeout is None:
        timeout = settings.reservation_lock_timeout_seconds

    await set_lock_timeout(db, timeout)
    try:
        return await db.execute(query.with_for_update())
    except DBAPIError as exc:
        if not is_lock_timeout(exc):
            raise
        logger.warning("Timed out after %.2fs waiting for a row lock", timeout)
        raise ReservationTimeout(
            "The record is locked by another request, please retry",
            {"timeout_seconds": timeout},
        ) from None
