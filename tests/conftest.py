"""
Shared pytest fixtures for Kubetask tests.

This module provides common fixtures including:
- FakePodDriver: In-memory EnvironmentDriver recording every pod call
- Redis doubles for storage tests
- Task builders
"""

import asyncio
import fnmatch
import os
import sys
from dataclasses import dataclass, field
from typing import List, Optional
from unittest.mock import AsyncMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kubetask.modules.api.models import Task
from kubetask.modules.executor.pod_driver import EnvironmentHandle, PodPhase
from kubetask.modules.storage import RedisTaskStore


# =============================================================================
# Pod Driver Double
# =============================================================================

@dataclass
class FakePodDriver:
    """
    EnvironmentDriver double with scripted outcomes.

    Usage:
        def test_run(fake_driver):
            fake_driver.output = "hi\\n"
            fake_driver.await_error = EnvironmentTimeoutError("stuck")

            # Run code that drives pods
            ...

            assert fake_driver.destroyed == fake_driver.created
    """

    phase: PodPhase = PodPhase.SUCCEEDED
    output: Optional[str] = None
    create_error: Optional[Exception] = None
    await_error: Optional[Exception] = None
    fetch_error: Optional[Exception] = None
    destroy_error: Optional[Exception] = None
    namespace: str = "default"

    commands: List[str] = field(default_factory=list)
    created: List[EnvironmentHandle] = field(default_factory=list)
    destroyed: List[EnvironmentHandle] = field(default_factory=list)
    waited: List[EnvironmentHandle] = field(default_factory=list)
    timeouts: List[float] = field(default_factory=list)

    async def create(self, command: str) -> EnvironmentHandle:
        self.commands.append(command)
        if self.create_error:
            raise self.create_error
        handle = EnvironmentHandle(
            name=f"task-exec-{len(self.created) + 1:05d}", namespace=self.namespace
        )
        self.created.append(handle)
        return handle

    async def await_terminal(self, handle: EnvironmentHandle, timeout: float) -> PodPhase:
        self.waited.append(handle)
        self.timeouts.append(timeout)
        # Yield so concurrent runs interleave
        await asyncio.sleep(0)
        if self.await_error:
            raise self.await_error
        return self.phase

    async def fetch_output(self, handle: EnvironmentHandle) -> str:
        if self.fetch_error:
            raise self.fetch_error
        if self.output is not None:
            return self.output
        # Echo the command the way busybox would
        command = self.commands[self.created.index(handle)]
        return command.partition(" ")[2] + "\n" if command.startswith("echo") else ""

    async def destroy(self, handle: EnvironmentHandle) -> None:
        self.destroyed.append(handle)
        if self.destroy_error:
            raise self.destroy_error


@pytest.fixture
def fake_driver():
    """Fresh FakePodDriver that succeeds by default."""
    return FakePodDriver()


# =============================================================================
# Redis Mocking Infrastructure
# =============================================================================

@pytest.fixture
def mock_redis():
    """Create a mock Redis client for async operations."""
    redis = AsyncMock()

    redis.set = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.delete = AsyncMock(return_value=0)
    redis.exists = AsyncMock(return_value=0)
    redis.sadd = AsyncMock()
    redis.srem = AsyncMock()
    redis.smembers = AsyncMock(return_value=set())
    redis.rpush = AsyncMock(return_value=1)
    redis.lrange = AsyncMock(return_value=[])
    redis.eval = AsyncMock(return_value=1)
    redis.ping = AsyncMock(return_value=True)

    return redis


@pytest.fixture
def mock_redis_with_data():
    """
    Redis mock with in-memory data storage for more realistic tests.

    This allows testing code that reads back what it writes. Each
    operation completes without yielding, so it is atomic under asyncio
    just as the real command is atomic on the server.
    """
    strings = {}
    sets = {}
    lists = {}

    redis = AsyncMock()

    async def mock_set(key, value, *args, **kwargs):
        strings[key] = value
        return True

    async def mock_get(key):
        return strings.get(key)

    async def mock_delete(*keys):
        count = 0
        for key in keys:
            for store in (strings, sets, lists):
                if key in store:
                    del store[key]
                    count += 1
        return count

    async def mock_exists(*keys):
        return sum(1 for k in keys if k in strings or k in sets or k in lists)

    async def mock_keys(pattern):
        every_key = list(strings) + list(sets) + list(lists)
        return [k for k in every_key if fnmatch.fnmatch(k, pattern)]

    async def mock_sadd(key, *members):
        bucket = sets.setdefault(key, set())
        before = len(bucket)
        bucket.update(members)
        return len(bucket) - before

    async def mock_srem(key, *members):
        bucket = sets.get(key, set())
        removed = len(bucket & set(members))
        bucket.difference_update(members)
        if not bucket:
            sets.pop(key, None)
        return removed

    async def mock_smembers(key):
        return set(sets.get(key, set()))

    async def mock_rpush(key, *values):
        items = lists.setdefault(key, [])
        items.extend(values)
        return len(items)

    async def mock_lrange(key, start, end):
        items = lists.get(key, [])
        return items[start:] if end == -1 else items[start:end + 1]

    async def mock_eval(script, numkeys, *keys_and_args):
        # Only the execution append script is used: EXISTS KEYS[1], then RPUSH
        task_key, executions_key = keys_and_args[:numkeys]
        if task_key not in strings:
            return -1
        return await mock_rpush(executions_key, *keys_and_args[numkeys:])

    redis.set = mock_set
    redis.get = mock_get
    redis.delete = mock_delete
    redis.exists = mock_exists
    redis.keys = mock_keys
    redis.sadd = mock_sadd
    redis.srem = mock_srem
    redis.smembers = mock_smembers
    redis.rpush = mock_rpush
    redis.lrange = mock_lrange
    redis.eval = mock_eval
    redis.ping = AsyncMock(return_value=True)
    redis._strings = strings  # Expose for test assertions
    redis._lists = lists

    return redis


@pytest.fixture
def task_store(mock_redis_with_data):
    """RedisTaskStore over the in-memory Redis double."""
    return RedisTaskStore(mock_redis_with_data)


def make_task(
    command: str = "echo hi",
    name: str = "greeting",
    owner: Optional[str] = "alice",
    server_name: Optional[str] = "srv-1",
) -> Task:
    """Build an unsaved task."""
    return Task(name=name, command=command, owner=owner, server_name=server_name)
