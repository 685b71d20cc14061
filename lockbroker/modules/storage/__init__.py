"""
Storage Module - Black Box Interface

Purpose: Persist work items
Interface: WorkItemStore (insert, get, scan, snapshot, claim_next,
           mark_terminal, delete_terminal_before), create_store(),
           StorageModule.connect()
Hidden: Redis key layout, Lua scripts, in-process locking

Backings are interchangeable: the in-memory store loses every item on
restart, the Redis store survives restarts. Queue semantics are identical.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from .memory import InMemoryWorkItemStore
from .redis_store import RedisWorkItemStore
from .store import WorkItemStore

logger = logging.getLogger("lockbroker.storage")

SUPPORTED_BACKENDS = ("memory", "redis")


def create_store(config, redis_client=None) -> WorkItemStore:
    """
    Build the work item store for the configured backend.

    Args:
        config: ConfigModule (or anything with a ``get`` method)
        redis_client: Async Redis client, required for the redis backend

    Raises:
        ValueError: Unknown backend, or redis backend without a client
    """
    backend = config.get("storage_backend", "memory")

    if backend == "redis":
        if redis_client is None:
            raise ValueError("The redis storage backend needs a Redis client")
        return RedisWorkItemStore(
            redis_client, key_prefix=config.get("redis_key_prefix", "lockqueue")
        )

    if backend == "memory":
        logger.warning(
            "Using in-memory work item store: queued and in-flight commands "
            "are lost when the process restarts"
        )
        return InMemoryWorkItemStore()

    raise ValueError(f"Unsupported storage backend: {backend}")


class StorageModule:
    """Builds the configured work item store and owns its connection."""

    def __init__(self, config):
        """
        Initialize storage from configuration.

        Args:
            config: ConfigModule (or anything with a ``get`` method)
        """
        self.config = config
        self.backend = config.get("storage_backend", "memory")
        if self.backend not in SUPPORTED_BACKENDS:
            raise ValueError(f"Unsupported storage backend: {self.backend}")

        self._client: Optional[redis.Redis] = None
        self._store: Optional[WorkItemStore] = None

    @property
    def redis_url(self) -> str:
        return (
            f"redis://{self.config.get('redis_host')}:{self.config.get('redis_port')}"
            f"/{self.config.get('redis_db')}"
        )

    async def connect(self) -> WorkItemStore:
        """Get the work item store, connecting on first use."""
        if self._store:
            return self._store

        if self.backend == "redis":
            # Password passed separately to avoid URL encoding issues
            self._client = redis.from_url(
                self.redis_url,
                password=self.config.get("redis_password"),
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info(f"Using Redis work item store at {self.redis_url}")

        self._store = create_store(self.config, self._client)
        return self._store

    async def disconnect(self):
        """Close storage connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
        self._store = None


__all__ = [
    "InMemoryWorkItemStore",
    "RedisWorkItemStore",
    "StorageModule",
    "WorkItemStore",
    "create_store",
]
