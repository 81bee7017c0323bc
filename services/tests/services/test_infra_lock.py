"""Tests for per-infra dispatch serialization."""

import asyncio
from unittest.mock import MagicMock, patch

import httpx
import pytest

from harbormaster.config import LockBackend, OperationsConfig
from harbormaster.errors import ConflictError
from harbormaster.services import infra_lock
from harbormaster.services.credentials_service import InfraCredentials
from harbormaster.services.infra_lock import (
    MemoryInfraLock,
    NullInfraLock,
    RedisInfraLock,
    get_infra_lock,
    init_infra_lock,
)
from harbormaster.services.orchestrator import ProvisioningOrchestrator

AWS = InfraCredentials(aws_integration_id=1)


class TestMemoryInfraLock:
    async def test_serializes_same_infra(self):
        lock = MemoryInfraLock()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with lock.hold(9):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]

    async def test_other_infras_not_blocked(self):
        lock = MemoryInfraLock()

        async with lock.hold(9):
            async with lock.hold(10):
                pass

    async def test_released_locks_are_dropped(self):
        lock = MemoryInfraLock()

        async def worker() -> None:
            async with lock.hold(9):
                await asyncio.sleep(0.01)

        await asyncio.gather(worker(), worker(), worker())
        async with lock.hold(10):
            assert list(lock._locks) == [10]

        assert lock._locks == {}
        assert lock._users == {}

    async def test_lock_dropped_after_error(self):
        lock = MemoryInfraLock()

        with pytest.raises(RuntimeError):
            async with lock.hold(9):
                raise RuntimeError("dispatch failed")

        assert lock._locks == {}


class TestNullInfraLock:
    async def test_does_not_serialize(self):
        lock = NullInfraLock()

        async with lock.hold(9):
            async with lock.hold(9):
                pass


class TestRedisInfraLock:
    async def test_uses_prefixed_key_and_timeout(self):
        client = MagicMock()
        redis_lock = MagicMock()
        client.lock.return_value = redis_lock

        async with RedisInfraLock(client, timeout_seconds=60).hold(9):
            pass

        client.lock.assert_called_once_with("hm:infra_lock:9", timeout=60)
        redis_lock.__aenter__.assert_awaited_once()
        redis_lock.__aexit__.assert_awaited_once()


class TestInitInfraLock:
    def teardown_method(self):
        infra_lock._lock = None

    def test_disabled_by_default(self):
        with patch("harbormaster.config.settings.operations", OperationsConfig()):
            init_infra_lock()
        assert isinstance(get_infra_lock(), NullInfraLock)

    def test_memory_backend(self):
        ops = OperationsConfig(single_flight=True, lock_backend=LockBackend.MEMORY)
        with patch("harbormaster.config.settings.operations", ops):
            init_infra_lock()
        assert isinstance(get_infra_lock(), MemoryInfraLock)

    @patch("harbormaster.redis.client.get_redis_client")
    def test_redis_backend(self, mock_get_redis):
        ops = OperationsConfig(single_flight=True, lock_backend=LockBackend.REDIS)
        with patch("harbormaster.config.settings.operations", ops):
            init_infra_lock()
        assert isinstance(get_infra_lock(), RedisInfraLock)

    def test_uninitialized_falls_back_to_null(self):
        assert isinstance(get_infra_lock(), NullInfraLock)


class TestSingleFlightDispatch:
    async def test_second_request_waits_then_conflicts(
        self, repo, provisioner, seed, provisioner_handler
    ):
        reached = asyncio.Event()
        release = asyncio.Event()

        async def slow_accept(request: httpx.Request) -> httpx.Response:
            reached.set()
            await release.wait()
            return httpx.Response(200, json={"status": "accepted"})

        provisioner_handler.respond = slow_accept
        infra, _ = seed()
        orchestrator = ProvisioningOrchestrator(
            repo, provisioner, OperationsConfig(single_flight=True), lock=MemoryInfraLock()
        )

        first = asyncio.create_task(orchestrator.update(4, infra.id, AWS))
        await reached.wait()
        second = asyncio.create_task(orchestrator.delete(4, infra.id, AWS))
        await asyncio.sleep(0.01)

        assert not second.done()
        release.set()

        assert (await first).infra.status == "updating"
        with pytest.raises(ConflictError):
            await second
        assert len(provisioner_handler.calls) == 1
