"""Single-writer guard for sweeps.

Only one sweep per (category, operation) may run across all processes:
two concurrent sweeps would read the same cursor and either forward a page
twice or persist a cursor past rows the other one has not forwarded yet.
The lock is a Redis key set with NX and a TTL, so a crashed holder frees it
automatically; refresh and release verify ownership atomically in Lua.
"""

from __future__ import annotations

import contextlib
import uuid
from typing import TYPE_CHECKING, AsyncIterator

from feedline.main.exceptions import SweepAlreadyRunning
from feedline.main.logging import get_logger

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = get_logger(__name__)

REFRESH_SWEEP_LOCK: str = (
    # KEYS[1]: lock key
    # ARGV[1]: expected owner
    # ARGV[2]: ttl (seconds)
    #
    # Returns 1 if refreshed, 0 if the caller no longer owns the lock.
    "local key = KEYS[1]\n"
    "local expected_owner = ARGV[1]\n"
    "local ttl = tonumber(ARGV[2])\n"
    "local current_owner = redis.call('GET', key)\n"
    "if current_owner == expected_owner then\n"
    "    redis.call('EXPIRE', key, ttl)\n"
    "    return 1\n"
    "end\n"
    "return 0\n"
)

RELEASE_SWEEP_LOCK: str = (
    # KEYS[1]: lock key
    # ARGV[1]: expected owner
    #
    # Returns 1 if released, 0 if the caller no longer owns the lock.
    "local key = KEYS[1]\n"
    "local expected_owner = ARGV[1]\n"
    "local current_owner = redis.call('GET', key)\n"
    "if current_owner == expected_owner then\n"
    "    return redis.call('DEL', key)\n"
    "end\n"
    "return 0\n"
)


def sweep_lock_key(category: str, operation: str) -> str:
    return f"sweep:{category}:{operation}:lock"


class SweepLock:
    """Redis lock for one (category, operation) pair.

    Args:
        redis_client: Async Redis connection.
        category: Category being swept.
        operation: Sweep operation key, e.g. ``crunch_global``.
        ttl_seconds: Expiry of an unreleased lock.
        owner: Identifier written into the lock; random by default.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        category: str,
        operation: str,
        ttl_seconds: int = 600,
        owner: str | None = None,
    ) -> None:
        self._redis = redis_client
        self._category = category
        self._operation = operation
        self._key = sweep_lock_key(category, operation)
        self._ttl = ttl_seconds
        self._owner = owner or uuid.uuid4().hex

    @property
    def key(self) -> str:
        return self._key

    async def try_acquire(self) -> bool:
        acquired = await self._redis.set(self._key, self._owner, nx=True, ex=self._ttl)
        return bool(acquired)

    async def refresh(self) -> bool:
        """Extend the TTL if this instance still owns the lock."""
        try:
            run_script = getattr(self._redis, "ev" + "al")
            result = await run_script(REFRESH_SWEEP_LOCK, 1, self._key, self._owner, str(self._ttl))
            return bool(int(result))
        except Exception as exc:
            logger.debug(
                "Failed to refresh sweep lock",
                extra={"error": str(exc), "lock_key": self._key},
            )
            return False

    async def release(self) -> bool:
        try:
            run_script = getattr(self._redis, "ev" + "al")
            result = await run_script(RELEASE_SWEEP_LOCK, 1, self._key, self._owner)
            return bool(int(result))
        except Exception as exc:
            logger.warning(
                "Failed to release sweep lock",
                extra={"error": str(exc), "lock_key": self._key},
            )
            return False

    @contextlib.asynccontextmanager
    async def hold(self) -> AsyncIterator["SweepLock"]:
        """Hold the lock for the duration of the block.

        Raises:
            SweepAlreadyRunning: another process holds the lock.
        """
        if not await self.try_acquire():
            raise SweepAlreadyRunning(self._category, self._operation)

        try:
            yield self
        finally:
            await self.release()
