"""Abstract work item store interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

from lockbroker.modules.queue.models import QueueSnapshot, WorkItem, WorkItemStatus


class WorkItemStore(ABC):
    """
    Collection of work items keyed by id.

    Implementations must make ``claim_next`` and ``mark_terminal`` atomic
    with respect to concurrent callers, and ``snapshot`` must observe a
    single consistent state.
    """

    @abstractmethod
    async def insert(self, item: WorkItem) -> WorkItem:
        """Persist a new item, assigning its insertion sequence number."""

    @abstractmethod
    async def get(self, item_id: str) -> Optional[WorkItem]:
        """Look up one item by id."""

    @abstractmethod
    async def scan(self, status: Optional[WorkItemStatus] = None) -> List[WorkItem]:
        """Return items, optionally filtered by status, in insertion order."""

    @abstractmethod
    async def snapshot(self) -> QueueSnapshot:
        """Return pending (FIFO order) and processing items atomically."""

    @abstractmethod
    async def claim_next(self, started_at: str, exclusive: bool = False) -> Optional[WorkItem]:
        """
        Move the oldest pending item to processing and return it.

        Args:
            started_at: Timestamp to stamp as processingStartedAt
            exclusive: Return None if any item is already processing

        Returns:
            The claimed item, or None if nothing was claimable
        """

    @abstractmethod
    async def mark_terminal(
        self,
        item_id: str,
        status: WorkItemStatus,
        completed_at: str,
        failure_reason: Optional[str] = None,
        expected_status: Optional[WorkItemStatus] = None,
    ) -> Optional[WorkItem]:
        """
        Set a terminal status on an item.

        Returns None for unknown ids, and when ``expected_status`` is given
        but the item is currently in a different status.
        """

    @abstractmethod
    async def delete_terminal_before(self, cutoff: str) -> int:
        """Remove terminal items completed before ``cutoff``. Returns count removed."""

    async def ping(self) -> bool:
        return True
