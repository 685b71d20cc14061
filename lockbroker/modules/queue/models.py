"""
Work item data model.

A WorkItem is one request for the device to perform a numbered action.
Records are persisted as JSON objects with camelCase keys.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

MIN_ACTION = 1
MAX_ACTION = 8


class WorkItemStatus(str, Enum):
    """Lifecycle status of a work item."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkItemStatus.COMPLETED, WorkItemStatus.FAILED)


@dataclass
class WorkItem:
    """
    One unit of arbitration.

    ``seq`` is assigned by the store on insert and breaks ties between
    items submitted within the same timestamp.
    """

    id: str
    action: int
    requester_id: str
    status: WorkItemStatus = WorkItemStatus.PENDING
    submitted_at: Optional[str] = None
    seq: int = 0
    processing_started_at: Optional[str] = None
    completed_at: Optional[str] = None
    failure_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted record layout. Absent fields are omitted."""
        data = {
            "id": self.id,
            "action": self.action,
            "requesterId": self.requester_id,
            "status": self.status.value,
            "submittedAt": self.submitted_at,
            "seq": self.seq,
            "processingStartedAt": self.processing_started_at,
            "completedAt": self.completed_at,
            "failureReason": self.failure_reason,
        }
        return {key: value for key, value in data.items() if value is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkItem":
        """Create from a persisted record."""
        return cls(
            id=data["id"],
            action=int(data["action"]),
            requester_id=data["requesterId"],
            status=WorkItemStatus(data.get("status", WorkItemStatus.PENDING.value)),
            submitted_at=data.get("submittedAt"),
            seq=int(data.get("seq", 0)),
            processing_started_at=data.get("processingStartedAt"),
            completed_at=data.get("completedAt"),
            failure_reason=data.get("failureReason"),
        )


@dataclass
class QueueSnapshot:
    """Consistent view of the non-terminal part of the store."""

    pending: List[WorkItem] = field(default_factory=list)
    processing: List[WorkItem] = field(default_factory=list)


@dataclass
class QueueStatus:
    """Answer to a status query for one requester."""

    is_processing: bool
    queue_length: int
    current_requester_id: Optional[str]
    your_position: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isProcessing": self.is_processing,
            "queueLength": self.queue_length,
            "currentRequesterId": self.current_requester_id,
            "yourPosition": self.your_position,
        }
