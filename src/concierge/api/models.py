"""
Pydantic models for Concierge API requests and responses.
This module defines the request and response schemas used by the Concierge API.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class SessionResponse(BaseModel):
    """Response with session information."""

    session_id: str


class MessageRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., min_length=1, description="User message for the concierge")
    session_id: Optional[str] = Field(None, description="Session ID for conversation context")


class ToolResultModel(BaseModel):
    """A tool call executed while answering."""

    name: str
    content: str
    failed: bool


class MessageResponse(BaseModel):
    """API response returned to the caller."""

    reply: str
    tool_results: List[ToolResultModel] | None = None
    sources: Dict[str, Any] | None = None  # metadata of the grounding passage, if any
    session_id: str
