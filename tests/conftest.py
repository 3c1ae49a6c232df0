"""
Shared pytest fixtures for requestkit tests.

This module provides common fixtures including:
- Redis mocks for cache/session/queue tests
- A controllable clock for TTL and timeout tests
"""

import asyncio
import fnmatch
import os
import sys
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """
    Manually advanced clock.

    time() feeds epoch-second consumers (sessions, GC), utcnow() feeds the
    datetime-based fetch cache. Both read the same instant.
    """

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def time(self) -> float:
        return self.now

    def utcnow(self) -> datetime:
        return datetime.fromtimestamp(self.now, tz=UTC)

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


# =============================================================================
# Redis Mocking Infrastructure
# =============================================================================


@pytest.fixture
def mock_redis():
    """Create a mock Redis client for async operations."""
    redis = AsyncMock()

    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.delete = AsyncMock(return_value=1)
    redis.exists = AsyncMock(return_value=0)
    redis.expire = AsyncMock()

    redis.sadd = AsyncMock()
    redis.srem = AsyncMock()
    redis.smembers = AsyncMock(return_value=set())

    redis.lpush = AsyncMock()
    redis.rpop = AsyncMock(return_value=None)
    redis.brpop = AsyncMock(return_value=None)
    redis.llen = AsyncMock(return_value=0)

    redis.ping = AsyncMock(return_value=True)
    redis.pipeline = MagicMock()

    return redis


@pytest.fixture
def mock_redis_with_data():
    """
    Redis mock with in-memory data storage for more realistic tests.

    This allows testing code that reads back what it writes. Strings, sets
    and lists live in `_storage`; every method is an AsyncMock so calls can
    still be asserted.
    """
    storage = {}

    async def mock_set(key, value, *args, **kwargs):
        storage[key] = value
        return True

    async def mock_setex(key, ttl, value):
        storage[key] = value
        return True

    async def mock_get(key):
        value = storage.get(key)
        return value if isinstance(value, str) else None

    async def mock_delete(*keys):
        count = 0
        for key in keys:
            if key in storage:
                del storage[key]
                count += 1
        return count

    async def mock_exists(*keys):
        return sum(1 for k in keys if k in storage)

    async def mock_keys(pattern):
        return [k for k in storage.keys() if fnmatch.fnmatch(k, pattern)]

    async def mock_sadd(key, *members):
        members_set = storage.setdefault(key, set())
        before = len(members_set)
        members_set.update(members)
        return len(members_set) - before

    async def mock_srem(key, *members):
        members_set = storage.get(key, set())
        removed = len(members_set & set(members))
        members_set.difference_update(members)
        if not members_set and key in storage:
            del storage[key]
        return removed

    async def mock_smembers(key):
        return set(storage.get(key, set()))

    async def mock_lpush(key, *values):
        items = storage.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    async def mock_rpop(key):
        items = storage.get(key)
        if not items:
            return None
        value = items.pop()
        if not items:
            del storage[key]
        return value

    async def mock_brpop(key, timeout=0):
        value = await mock_rpop(key)
        if value is None:
            # A real BRPOP blocks; yield so a polling worker cannot starve the loop
            await asyncio.sleep(0)
            return None
        return (key, value)

    async def mock_llen(key):
        return len(storage.get(key, []))

    async def mock_expire(key, ttl):
        return key in storage

    async def mock_ping():
        return True

    redis = AsyncMock()
    redis.set = AsyncMock(side_effect=mock_set)
    redis.setex = AsyncMock(side_effect=mock_setex)
    redis.get = AsyncMock(side_effect=mock_get)
    redis.delete = AsyncMock(side_effect=mock_delete)
    redis.exists = AsyncMock(side_effect=mock_exists)
    redis.keys = AsyncMock(side_effect=mock_keys)
    redis.sadd = AsyncMock(side_effect=mock_sadd)
    redis.srem = AsyncMock(side_effect=mock_srem)
    redis.smembers = AsyncMock(side_effect=mock_smembers)
    redis.lpush = AsyncMock(side_effect=mock_lpush)
    redis.rpop = AsyncMock(side_effect=mock_rpop)
    redis.brpop = AsyncMock(side_effect=mock_brpop)
    redis.llen = AsyncMock(side_effect=mock_llen)
    redis.expire = AsyncMock(side_effect=mock_expire)
    redis.ping = AsyncMock(side_effect=mock_ping)
    redis._storage = storage  # Expose for test assertions

    return redis


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Integration tests wiring several modules together"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take a long time to run"
    )
