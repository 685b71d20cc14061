"""
API Module - Black Box Interface

Purpose: HTTP request/response shapes
Interface: Pydantic models used by the REST endpoints
Hidden: Field aliases for legacy clients

The API module only describes the wire format - it contains no queue logic.
"""

from .models import (
    ActionRequest,
    ActionResponse,
    CommandPayload,
    CompleteRequest,
    CompleteResponse,
    NextCommandResponse,
    StatusResponse,
)

__all__ = [
    "ActionRequest",
    "ActionResponse",
    "CommandPayload",
    "CompleteRequest",
    "CompleteResponse",
    "NextCommandResponse",
    "StatusResponse",
]
