"""
Lockbroker API data models.

Request models accept both the documented field names and the names used
by older web pages and device clients (``button``, ``userId``,
``commandId``, ``error``). Responses are serialized with camelCase keys.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, StrictInt

from lockbroker.modules.queue import QueueStatus, WorkItem

# Request Models (API Input)


class ActionRequest(BaseModel):
    """Request from a web client to perform a device action.

    The action must be a JSON integer; booleans, numeric strings and
    floats are rejected. Range and presence checks happen in the queue
    engine so that every rejection has the same shape.
    """

    action: Optional[StrictInt] = Field(
        None,
        description="Device action number (1-8)",
        validation_alias=AliasChoices("action", "button"),
    )
    requester_id: Optional[str] = Field(
        None,
        description="Identifier of the requesting client",
        validation_alias=AliasChoices("requesterId", "userId", "requester_id"),
    )


class CompleteRequest(BaseModel):
    """Outcome report from the device."""

    id: str = Field(
        ...,
        description="Work item identifier from next-command",
        validation_alias=AliasChoices("id", "commandId", "command_id"),
    )
    success: bool = Field(False, description="Whether the device performed the action")
    reason: Optional[str] = Field(
        None,
        description="Failure description from the device",
        validation_alias=AliasChoices("reason", "error"),
    )


# Response Models (API Output)


class StatusResponse(BaseModel):
    """Queue status from one requester's point of view."""

    is_processing: bool = Field(..., serialization_alias="isProcessing")
    queue_length: int = Field(..., serialization_alias="queueLength")
    current_requester_id: Optional[str] = Field(None, serialization_alias="currentRequesterId")
    your_position: int = Field(0, serialization_alias="yourPosition")

    @classmethod
    def from_status(cls, status: QueueStatus) -> "StatusResponse":
        return cls(
            is_processing=status.is_processing,
            queue_length=status.queue_length,
            current_requester_id=status.current_requester_id,
            your_position=status.your_position,
        )


class ActionResponse(BaseModel):
    """Result of an action request."""

    success: bool
    message: str
    timestamp: Optional[str] = None


class CommandPayload(BaseModel):
    """Work item as handed to the device."""

    id: str
    action: int
    requester_id: str = Field(..., serialization_alias="requesterId")

    @classmethod
    def from_item(cls, item: WorkItem) -> "CommandPayload":
        return cls(id=item.id, action=item.action, requester_id=item.requester_id)


class NextCommandResponse(BaseModel):
    command: Optional[CommandPayload] = None


class CompleteResponse(BaseModel):
    success: bool = True
