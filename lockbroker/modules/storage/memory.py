"""
Transient in-process work item store.

All items live in a dict guarded by a single asyncio lock. Everything is
lost when the process restarts; use the Redis store when the queue must
survive restarts.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from lockbroker.modules.queue.models import QueueSnapshot, WorkItem, WorkItemStatus
from lockbroker.modules.storage.store import WorkItemStore

logger = logging.getLogger("lockbroker.storage")


class InMemoryWorkItemStore(WorkItemStore):
    def __init__(self):
        self._items: Dict[str, WorkItem] = {}
        self._seq = 0
        self._lock = asyncio.Lock()

    async def insert(self, item: WorkItem) -> WorkItem:
        async with self._lock:
            self._seq += 1
            stored = replace(item, seq=self._seq)
            self._items[stored.id] = stored
            return replace(stored)

    async def get(self, item_id: str) -> Optional[WorkItem]:
        async with self._lock:
            item = self._items.get(item_id)
            return replace(item) if item else None

    async def scan(self, status: Optional[WorkItemStatus] = None) -> List[WorkItem]:
        async with self._lock:
            return [replace(item) for item in self._ordered(status)]

    async def snapshot(self) -> QueueSnapshot:
        async with self._lock:
            return QueueSnapshot(
                pending=[replace(i) for i in self._ordered(WorkItemStatus.PENDING)],
                processing=[replace(i) for i in self._ordered(WorkItemStatus.PROCESSING)],
            )

    async def claim_next(self, started_at: str, exclusive: bool = False) -> Optional[WorkItem]:
        async with self._lock:
            if exclusive and self._ordered(WorkItemStatus.PROCESSING):
                return None

            pending = self._ordered(WorkItemStatus.PENDING)
            if not pending:
                return None

            item = pending[0]
            item.status = WorkItemStatus.PROCESSING
            item.processing_started_at = started_at
            return replace(item)

    async def mark_terminal(
        self,
        item_id: str,
        status: WorkItemStatus,
        completed_at: str,
        failure_reason: Optional[str] = None,
        expected_status: Optional[WorkItemStatus] = None,
    ) -> Optional[WorkItem]:
        async with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            if expected_status is not None and item.status != expected_status:
                return None

            item.status = status
            item.completed_at = completed_at
            item.failure_reason = failure_reason
            return replace(item)

    async def delete_terminal_before(self, cutoff: str) -> int:
        cutoff_at = datetime.fromisoformat(cutoff)
        async with self._lock:
            expired = [
                item_id
                for item_id, item in self._items.items()
                if item.is_terminal
                and item.completed_at
                and datetime.fromisoformat(item.completed_at) < cutoff_at
            ]
            for item_id in expired:
                del self._items[item_id]

        if expired:
            logger.debug(f"Removed {len(expired)} expired work items")
        return len(expired)

    def _ordered(self, status: Optional[WorkItemStatus]) -> List[WorkItem]:
        items = [i for i in self._items.values() if status is None or i.status == status]
        return sorted(items, key=lambda i: i.seq)
