"""
Queue Module - Black Box Interface

Purpose: Arbitrate exclusive access to the device
Interface: submit(), query_status(), claim_next(), complete(),
           await_outcome(), retention_sweep(), expire_stale()
Hidden: FIFO ordering, single-claim guard, wait/notify mechanics

At most one work item is processing at a time. Submitters wait on their
own item without blocking anyone else.
"""

from .errors import (
    ActuationFailure,
    InvalidInput,
    NotFound,
    QueueError,
    StoreUnavailable,
    WaitTimeout,
)
from .models import MAX_ACTION, MIN_ACTION, QueueSnapshot, QueueStatus, WorkItem, WorkItemStatus
from .queue import QueueModule
from .waiter import Notifier, Waiter

__all__ = [
    "ActuationFailure",
    "InvalidInput",
    "MAX_ACTION",
    "MIN_ACTION",
    "NotFound",
    "Notifier",
    "QueueError",
    "QueueModule",
    "QueueSnapshot",
    "QueueStatus",
    "StoreUnavailable",
    "WaitTimeout",
    "Waiter",
    "WorkItem",
    "WorkItemStatus",
]
