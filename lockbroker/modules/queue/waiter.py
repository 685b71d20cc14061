"""
Waiter/Notifier - lets a caller block until its own work item resolves.

The notifier is an in-process subscription keyed by item id, fired by the
queue engine right after a terminal transition is written. Completions
made by another process (a second API replica sharing Redis) never reach
this notifier, so the waiter also re-reads the item every
``poll_interval`` seconds. Either signal ends the wait.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Set

from .errors import NotFound, WaitTimeout
from .models import WorkItem

logger = logging.getLogger("lockbroker.waiter")


class Notifier:
    """Per-item change subscriptions."""

    def __init__(self):
        self._subscribers: Dict[str, Set[asyncio.Event]] = defaultdict(set)

    def subscribe(self, item_id: str) -> asyncio.Event:
        event = asyncio.Event()
        self._subscribers[item_id].add(event)
        return event

    def unsubscribe(self, item_id: str, event: asyncio.Event) -> None:
        events = self._subscribers.get(item_id)
        if events is None:
            return
        events.discard(event)
        if not events:
            del self._subscribers[item_id]

    def notify(self, item_id: str) -> None:
        for event in self._subscribers.get(item_id, ()):
            event.set()

    def subscriber_count(self, item_id: str) -> int:
        return len(self._subscribers.get(item_id, ()))


class Waiter:
    def __init__(self, store, notifier: Notifier, poll_interval: float = 0.5):
        """
        Initialize waiter.

        Args:
            store: WorkItemStore to re-read items from
            notifier: Notifier fired by the queue engine on completion
            poll_interval: Seconds between re-reads when no notification arrives
        """
        self.store = store
        self.notifier = notifier
        self.poll_interval = poll_interval

    async def await_outcome(self, item_id: str, timeout: float) -> WorkItem:
        """
        Wait until the item reaches a terminal status.

        Args:
            item_id: Work item identifier
            timeout: Max seconds to wait

        Returns:
            The terminal work item

        Raises:
            NotFound: The item does not exist (or was already removed)
            WaitTimeout: No terminal status within ``timeout``; the item is untouched
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        # Subscribe before the first read so a completion landing in between is not lost
        event = self.notifier.subscribe(item_id)
        try:
            while True:
                item = await self.store.get(item_id)
                if item is None:
                    raise NotFound(item_id)
                if item.is_terminal:
                    return item

                remaining = deadline - loop.time()
                if remaining <= 0:
                    logger.info(f"Gave up waiting for {item_id} after {timeout}s")
                    raise WaitTimeout(item_id, timeout)

                try:
                    await asyncio.wait_for(event.wait(), timeout=min(self.poll_interval, remaining))
                except asyncio.TimeoutError:
                    pass
                event.clear()
        finally:
            self.notifier.unsubscribe(item_id, event)
