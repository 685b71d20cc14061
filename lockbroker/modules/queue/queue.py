import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import List, Optional

from .errors import ActuationFailure, InvalidInput, NotFound
from .models import MAX_ACTION, MIN_ACTION, QueueStatus, WorkItem, WorkItemStatus
from .waiter import Notifier, Waiter

logger = logging.getLogger("lockbroker.queue")

STALE_FAILURE_REASON = "Device did not report completion"


def _now() -> datetime:
    return datetime.now(UTC)


class QueueModule:
    def __init__(
        self,
        store,
        notifier: Optional[Notifier] = None,
        claim_guard: bool = True,
        wait_timeout: float = 60,
        poll_interval: float = 0.5,
        retention_seconds: float = 10,
        processing_timeout: float = 120,
    ):
        """
        Initialize queue engine.

        Args:
            store: WorkItemStore backing the queue
            notifier: Change notifier shared with waiters (created if omitted)
            claim_guard: Refuse to claim while another item is processing
            wait_timeout: Default seconds a submitter waits for the outcome
            poll_interval: Seconds between waiter re-reads
            retention_seconds: How long terminal items stay readable
            processing_timeout: Seconds before an unreported claim is failed
        """
        self.store = store
        self.notifier = notifier or Notifier()
        self.waiter = Waiter(store, self.notifier, poll_interval=poll_interval)
        self.claim_guard = claim_guard
        self.wait_timeout = wait_timeout
        self.retention_seconds = retention_seconds
        self.processing_timeout = processing_timeout

    async def submit(self, action: int, requester_id: str) -> str:
        """
        Add a work item to the back of the queue.

        Args:
            action: Device action number, 1-8
            requester_id: Identifier of the submitter

        Returns:
            Work item ID

        Raises:
            InvalidInput: Action out of range or requester id missing
        """
        if isinstance(action, bool) or not isinstance(action, int):
            raise InvalidInput("Invalid input")
        if not MIN_ACTION <= action <= MAX_ACTION:
            raise InvalidInput("Invalid input")
        if not requester_id or not str(requester_id).strip():
            raise InvalidInput("Invalid input")

        item = WorkItem(
            id=str(uuid.uuid4()),
            action=action,
            requester_id=requester_id,
            status=WorkItemStatus.PENDING,
            submitted_at=_now().isoformat(),
        )
        item = await self.store.insert(item)

        logger.info(f"Queued {item.id} (action {action}) for {requester_id}")
        return item.id

    async def query_status(self, requester_id: Optional[str] = None) -> QueueStatus:
        """
        Describe the queue from one requester's point of view.

        yourPosition is the 1-based rank of the requester's oldest pending
        item, or 0 if the requester has nothing pending.
        """
        snapshot = await self.store.snapshot()

        position = 0
        if requester_id:
            for index, item in enumerate(snapshot.pending, start=1):
                if item.requester_id == requester_id:
                    position = index
                    break

        current = snapshot.processing[0] if snapshot.processing else None
        return QueueStatus(
            is_processing=current is not None,
            queue_length=len(snapshot.pending),
            current_requester_id=current.requester_id if current else None,
            your_position=position,
        )

    async def claim_next(self) -> Optional[WorkItem]:
        """
        Hand the oldest pending item to the device.

        The transition is atomic in the store, so two racing claims never
        receive the same item. With ``claim_guard`` on, nothing is handed
        out while an earlier claim is still unreported.
        """
        item = await self.store.claim_next(_now().isoformat(), exclusive=self.claim_guard)
        if item:
            logger.info(f"Claimed {item.id} (action {item.action}) for {item.requester_id}")
        return item

    async def complete(
        self, item_id: str, success: bool, reason: Optional[str] = None
    ) -> WorkItem:
        """
        Record the device's outcome for a work item.

        An item that is not currently processing is still overwritten.

        Raises:
            NotFound: No item with that id
        """
        existing = await self.store.get(item_id)
        if existing is None:
            raise NotFound(item_id)
        if existing.status is not WorkItemStatus.PROCESSING:
            logger.warning(f"Completing {item_id} while it is {existing.status.value}")

        status = WorkItemStatus.COMPLETED if success else WorkItemStatus.FAILED
        item = await self.store.mark_terminal(
            item_id,
            status,
            _now().isoformat(),
            failure_reason=None if success else (reason or None),
        )
        if item is None:
            raise NotFound(item_id)

        self.notifier.notify(item_id)

        if success:
            logger.info(f"Completed {item_id} (action {item.action})")
        else:
            logger.warning(f"Failed {item_id} (action {item.action}): {reason}")
        return item

    async def await_outcome(self, item_id: str, timeout: Optional[float] = None) -> WorkItem:
        """Wait for an item to reach a terminal status."""
        return await self.waiter.await_outcome(
            item_id, self.wait_timeout if timeout is None else timeout
        )

    async def submit_and_wait(
        self, action: int, requester_id: str, timeout: Optional[float] = None
    ) -> WorkItem:
        """
        Submit a work item and wait for the device to finish it.

        Returns:
            The completed work item

        Raises:
            InvalidInput: Rejected before queuing
            WaitTimeout: No outcome within the timeout
            ActuationFailure: The device reported failure
        """
        item_id = await self.submit(action, requester_id)
        item = await self.await_outcome(item_id, timeout)
        if item.status is WorkItemStatus.FAILED:
            raise ActuationFailure(item_id, item.failure_reason)
        return item

    async def expire_stale(self) -> List[WorkItem]:
        """Fail processing items the device never reported on."""
        cutoff = _now() - timedelta(seconds=self.processing_timeout)
        expired = []

        for item in await self.store.scan(WorkItemStatus.PROCESSING):
            started = item.processing_started_at
            if started and datetime.fromisoformat(started) < cutoff:
                # Only fail it if the device has not reported in the meantime
                failed = await self.store.mark_terminal(
                    item.id,
                    WorkItemStatus.FAILED,
                    _now().isoformat(),
                    failure_reason=STALE_FAILURE_REASON,
                    expected_status=WorkItemStatus.PROCESSING,
                )
                if failed is None:
                    continue

                self.notifier.notify(item.id)
                logger.warning(f"{item.id} has been processing since {started}, marked failed")
                expired.append(failed)

        return expired

    async def retention_sweep(self) -> int:
        """Remove terminal items older than the retention window."""
        cutoff = _now() - timedelta(seconds=self.retention_seconds)
        removed = await self.store.delete_terminal_before(cutoff.isoformat())
        if removed:
            logger.debug(f"Retention sweep removed {removed} work items")
        return removed

    async def get(self, item_id: str) -> Optional[WorkItem]:
        return await self.store.get(item_id)
