"""
Shared pytest fixtures for Lockbroker tests.

This module provides common fixtures including:
- Redis mocks for the Redis work item store
- In-memory store and queue engine instances
- An API client wired to the real application lifespan
"""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lockbroker.modules.queue import QueueModule
from lockbroker.modules.storage import InMemoryWorkItemStore


# =============================================================================
# Redis Mocking Infrastructure
# =============================================================================

@pytest.fixture
def mock_redis():
    """Create a mock async Redis client for the Redis work item store."""
    redis = AsyncMock()

    # Basic operations
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.mget = AsyncMock(return_value=[])
    redis.delete = AsyncMock(return_value=1)
    redis.incr = AsyncMock(return_value=1)
    redis.ping = AsyncMock(return_value=True)

    # Set and sorted set operations
    redis.smembers = AsyncMock(return_value=set())
    redis.zrange = AsyncMock(return_value=[])
    redis.zrangebyscore = AsyncMock(return_value=[])

    # Lua scripts: each registration gets its own awaitable mock
    redis.register_script = MagicMock(side_effect=lambda script: AsyncMock(return_value=None))

    # Pipeline support (commands are buffered synchronously, execute is awaited)
    pipeline = MagicMock()
    pipeline.execute = AsyncMock(return_value=[])
    redis.pipeline = MagicMock(return_value=pipeline)

    return redis


# =============================================================================
# Queue Fixtures
# =============================================================================

@pytest.fixture
def memory_store():
    """Fresh in-memory work item store."""
    return InMemoryWorkItemStore()


@pytest.fixture
def queue(memory_store):
    """Queue engine over an in-memory store with short timings."""
    return QueueModule(
        memory_store,
        claim_guard=True,
        wait_timeout=1.0,
        poll_interval=0.05,
        retention_seconds=10,
        processing_timeout=120,
    )


@pytest.fixture
def unguarded_queue(memory_store):
    """Queue engine that trusts the device to claim one command at a time."""
    return QueueModule(memory_store, claim_guard=False, wait_timeout=1.0, poll_interval=0.05)


# =============================================================================
# API Fixtures
# =============================================================================

API_TEST_SETTINGS = {
    "storage_backend": "memory",
    "wait_timeout": 2.0,
    "poll_interval": 0.05,
    "retention_seconds": 10.0,
    "sweep_interval": 60.0,
    "processing_timeout": 120.0,
    "claim_guard": True,
}


@pytest.fixture
def api_settings(request):
    """
    Config overrides applied for the duration of an API test.

    Parametrize indirectly with a dict to change individual settings.
    """
    settings = dict(API_TEST_SETTINGS)
    settings.update(getattr(request, "param", {}))
    return settings


@pytest_asyncio.fixture
async def api_client(api_settings):
    """
    httpx client talking to the real app, with its lifespan running.

    Yields:
        (client, main module) so tests can reach the live queue module
    """
    from lockbroker import main

    previous = {key: main.config.get(key) for key in api_settings}
    for key, value in api_settings.items():
        main.config.set(key, value)

    try:
        async with main.lifespan(main.app):
            transport = httpx.ASGITransport(app=main.app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                yield client, main
    finally:
        for key, value in previous.items():
            main.config.set(key, value)


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Tests running the full application in-process"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take a long time to run"
    )
