"""
Queue error taxonomy.

Raised by the queue engine and the stores; the transport layer maps each
class to a response.
"""

from typing import Optional


class QueueError(Exception):
    """Base class for all queue errors."""


class InvalidInput(QueueError, ValueError):
    """Bad action number or missing requester id. Nothing was queued."""


class NotFound(QueueError):
    """No work item with the given id."""

    def __init__(self, item_id: str):
        super().__init__(f"Command {item_id} not found")
        self.item_id = item_id


class WaitTimeout(QueueError):
    """The wait for a terminal state exceeded its bound.

    The work item itself is left untouched and may still complete later.
    """

    def __init__(self, item_id: str, timeout: float):
        super().__init__(f"Timed out after {timeout}s waiting for {item_id}")
        self.item_id = item_id
        self.timeout = timeout


class ActuationFailure(QueueError):
    """The device reported that it could not perform the action."""

    def __init__(self, item_id: str, reason: Optional[str] = None):
        super().__init__(reason or "Failed")
        self.item_id = item_id
        self.reason = reason


class StoreUnavailable(QueueError):
    """The backing store could not be reached or returned an error."""
