"""Optional per-infra mutual exclusion for mutating requests.

Disabled by default: concurrent requests against one infra each dispatch
their own operation and the provisioner reconciles them. When
``operations.single_flight`` is on, a request holds the infra's lock from
status check through dispatch, so a racing request sees the in-flight
status and is rejected.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

import redis.asyncio as aioredis

from harbormaster.logging_config import get_logger

logger = get_logger(__name__)

_LOCK_PREFIX = "hm:infra_lock:"


class InfraLock(Protocol):
    def hold(self, infra_id: int) -> AbstractAsyncContextManager[None]:
        """Hold the lock for one infra for the duration of the block."""
        ...


class NullInfraLock:
    """No serialization."""

    @asynccontextmanager
    async def hold(self, infra_id: int) -> AsyncIterator[None]:
        yield


class MemoryInfraLock:
    """Per-process asyncio locks, keyed by infra id.

    A lock is dropped once no request holds or awaits it.
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, infra_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(infra_id, asyncio.Lock())
        self._users[infra_id] = self._users.get(infra_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[infra_id] -= 1
            if not self._users[infra_id]:
                del self._users[infra_id]
                del self._locks[infra_id]


class RedisInfraLock:
    """Distributed lock shared by all API replicas.

    The lock expires after ``timeout_seconds`` so a crashed holder cannot
    wedge the infra.
    """

    def __init__(self, client: aioredis.Redis, timeout_seconds: int = 300) -> None:
        self._client = client
        self._timeout = timeout_seconds

    @asynccontextmanager
    async def hold(self, infra_id: int) -> AsyncIterator[None]:
        lock = self._client.lock(f"{_LOCK_PREFIX}{infra_id}", timeout=self._timeout)
        async with lock:
            logger.debug("Infra lock acquired", infra_id=infra_id)
            yield


# --- Lifecycle ---

_lock: InfraLock | None = None


def init_infra_lock() -> None:
    """Build the lock configured under ``operations``. Call after init_redis()."""
    global _lock  # noqa: PLW0603
    from harbormaster.config import LockBackend, settings

    ops = settings.operations
    if not ops.single_flight:
        _lock = NullInfraLock()
    elif ops.lock_backend == LockBackend.REDIS:
        from harbormaster.redis.client import get_redis_client

        _lock = RedisInfraLock(get_redis_client(), timeout_seconds=ops.lock_timeout_seconds)
    else:
        _lock = MemoryInfraLock()
    logger.info("Infra lock initialized", backend=type(_lock).__name__)


def get_infra_lock() -> InfraLock:
    """Return the configured lock, or no serialization before initialization."""
    return _lock or NullInfraLock()
