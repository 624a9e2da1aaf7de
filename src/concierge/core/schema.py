"""
Schema definitions for model <-> orchestrator <-> tool messages.

These data models serve as the contract between the language model transport, the turn
orchestrator, the retrieval index and individual tools.  We keep them separate from runtime logic
so they can be imported anywhere without side-effects.
"""

from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class Role(str, Enum):
    """Author of a message in the conversation log."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCallRequest(BaseModel):
    """A call that the model wants the orchestrator to execute."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Provider-assigned call id, echoed back on the tool message")
    name: str = Field(..., description="Registered tool name")
    arguments: Union[str, Dict[str, Any], None] = Field(
        default=None, description="Raw arguments (JSON text or mapping), validated by the handler"
    )


class Message(BaseModel):
    """A single entry in a conversation context."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: Union[str, Dict[str, Any], List[Any], None] = None
    tool_call_id: Optional[str] = None  # Only on tool messages
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)  # Only on assistant messages

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(
        cls, content: str | None = None, tool_calls: List[ToolCallRequest] | None = None
    ) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tool_calls or [])

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Message":
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id)


class ToolDefinition(BaseModel):
    """Model-facing description of a callable tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class ToolResult(BaseModel):
    """Outcome of one tool call, always paired 1:1 with its request."""

    model_config = ConfigDict(frozen=True)

    tool_call_id: str
    name: str
    content: str
    failed: bool = False


class RetrievalMatch(BaseModel):
    """One hit from the vector index; lives for a single turn only."""

    model_config = ConfigDict(frozen=True)

    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    score: float = 0.0


class FinalAnswer(BaseModel):
    """The model answered with free text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["final_answer"] = "final_answer"
    text: str


class ToolCallRequested(BaseModel):
    """The model signalled that it wants tools invoked before answering."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["tool_calls"] = "tool_calls"
    calls: List[ToolCallRequest]
    text: Optional[str] = None  # Any free text that accompanied the calls


ModelResponse = Union[FinalAnswer, ToolCallRequested]


class RawCompletion(BaseModel):
    """Provider-neutral shape of one model completion, produced by a transport."""

    text: Optional[str] = None
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)
    stop_reason: Optional[str] = None
    wants_tools: bool = False  # True when the provider's termination signal means "call tools"
