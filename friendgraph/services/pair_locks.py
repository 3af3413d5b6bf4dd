import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from redis.exceptions import LockError, RedisError

from friendgraph.exceptions import StorePersistenceError
from friendgraph.models.friendship import canonical_pair

logger = logging.getLogger(__name__)


def pair_key(user_a: uuid.UUID, user_b: uuid.UUID) -> str:
    low, high = canonical_pair(user_a, user_b)
    return f"friendship-pair:{low}:{high}"


class PairLocks:
    """Serialises relationship writes per unordered user pair.

    With a Redis client the lock is shared by every worker process; without
    one, an asyncio.Lock per pair only serialises tasks within this process.
    Either way the lock must be held until the unit of work has committed.
    """

    def __init__(
        self,
        redis_client=None,
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
    ):
        self._redis = redis_client
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout
        self._local: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @property
    def distributed(self) -> bool:
        return self._redis is not None

    @asynccontextmanager
    async def hold(self, user_a: uuid.UUID, user_b: uuid.UUID) -> AsyncIterator[None]:
        key = pair_key(user_a, user_b)
        if self._redis is None:
            async with self._local_lock(key):
                yield
            return

        lock = self._redis.lock(
            key, timeout=self._timeout, blocking_timeout=self._blocking_timeout
        )
        try:
            acquired = await lock.acquire()
        except RedisError as exc:
            logger.warning("Could not reach Redis for pair lock %s: %s", key, exc)
            raise StorePersistenceError() from exc
        if not acquired:
            logger.warning("Timed out waiting for pair lock %s", key)
            raise StorePersistenceError("Another change to this friendship is in progress, try again")

        try:
            yield
        finally:
            try:
                await lock.release()
            except (LockError, RedisError) as exc:
                # Expired before release; the constraint check still guards the write.
                logger.warning("Releasing pair lock %s failed: %s", key, exc)

    @asynccontextmanager
    async def _local_lock(self, key: str) -> AsyncIterator[None]:
        lock = self._local.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._local[key]
