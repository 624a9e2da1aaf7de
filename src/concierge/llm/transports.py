"""
Model transports for Concierge.

This module is the only place that *directly* calls an LLM.  Everything else (orchestrator, tools,
retrieval) stays model-agnostic and only sees :class:`RawCompletion`.

We support two back-ends out of the box:

1. **OpenAI** chat completions with function tools.
2. **Anthropic** messages API with tool use.

Additional providers can be added by subclassing :class:`BaseTransport` and registering via
:func:`register_transport`.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
    Type,
)

from concierge.config import settings
from concierge.core.errors import TransportError
from concierge.core.schema import (
    Message,
    RawCompletion,
    Role,
    ToolCallRequest,
    ToolDefinition,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_TRANSPORT_REGISTRY: dict[str, Type["BaseTransport"]] = {}


def register_transport(name: str) -> Callable:
    """Decorator to register a transport class under *name*."""

    def wrapper(cls: Type["BaseTransport"]) -> Type["BaseTransport"]:
        _TRANSPORT_REGISTRY[name] = cls
        return cls

    return wrapper


def load_transport(name: str | None = None) -> "BaseTransport":
    """
    Factory that returns an instantiated transport.

    Fallback order:
    1. *name* arg
    2. ``settings.TRANSPORT`` env option
    3. default: ``"openai"``
    """

    target = name or getattr(settings, "TRANSPORT", "openai")
    cls = _TRANSPORT_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Transport '{target}' is not registered.")
    return cls()


def _as_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return json.dumps(content)


def _arguments_as_dict(arguments: str | Dict[str, Any] | None) -> Dict[str, Any]:
    if isinstance(arguments, dict):
        return arguments
    if not arguments:
        return {}
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseTransport(ABC):
    """Abstract transport that turns a message log (+ tools) into a :class:`RawCompletion`."""

    @abstractmethod
    def complete(
        self, messages: Sequence[Message], tools: Sequence[ToolDefinition] | None = None
    ) -> RawCompletion:
        """Call the provider once; tool choice is ``auto`` whenever *tools* is non-empty."""


# ---------------------------------------------------------------------------
# Concrete transports
# ---------------------------------------------------------------------------
@register_transport("openai")
class OpenAITransport(BaseTransport):
    """OpenAI chat-completions transport; ``finish_reason == "tool_calls"`` means tool use."""

    def __init__(self, client: Any = None, model: str | None = None) -> None:
        if client is None:
            import openai  # pylint: disable=import-outside-toplevel

            client = openai.OpenAI(api_key=settings.OPENAI_API_KEY)
        self._client = client
        self.model = model or settings.OPENAI_MODEL

    @staticmethod
    def to_wire(messages: Sequence[Message]) -> List[Dict[str, Any]]:
        """Convert the context into OpenAI chat message params."""
        wire: List[Dict[str, Any]] = []
        for msg in messages:
            if msg.role is Role.TOOL:
                wire.append(
                    {
                        "role": "tool",
                        "tool_call_id": msg.tool_call_id,
                        "content": _as_text(msg.content),
                    }
                )
            elif msg.role is Role.ASSISTANT and msg.tool_calls:
                wire.append(
                    {
                        "role": "assistant",
                        "content": _as_text(msg.content) or None,
                        "tool_calls": [
                            {
                                "id": call.id,
                                "type": "function",
                                "function": {
                                    "name": call.name,
                                    "arguments": (
                                        call.arguments
                                        if isinstance(call.arguments, str)
                                        else json.dumps(call.arguments or {})
                                    ),
                                },
                            }
                            for call in msg.tool_calls
                        ],
                    }
                )
            else:
                wire.append({"role": msg.role.value, "content": _as_text(msg.content)})
        return wire

    def complete(
        self, messages: Sequence[Message], tools: Sequence[ToolDefinition] | None = None
    ) -> RawCompletion:
        import openai  # pylint: disable=import-outside-toplevel

        kwargs: Dict[str, Any] = {"model": self.model, "messages": self.to_wire(messages)}
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
                for tool in tools
            ]
            # lets the model decide whether to call functions and, if so, which ones
            kwargs["tool_choice"] = "auto"

        try:
            resp = self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            logger.error("OpenAI request error: %s", str(exc))
            raise TransportError(f"Error calling OpenAI: {exc}") from exc

        if not resp.choices:
            raise TransportError("Error: Empty response from OpenAI")

        choice = resp.choices[0]
        message = choice.message
        calls = [
            ToolCallRequest(id=tc.id, name=tc.function.name, arguments=tc.function.arguments)
            for tc in (message.tool_calls or [])
        ]
        logger.debug("OpenAI finish_reason=%s, tool_calls=%d", choice.finish_reason, len(calls))
        return RawCompletion(
            text=message.content,
            tool_calls=calls,
            stop_reason=choice.finish_reason,
            wants_tools=choice.finish_reason == "tool_calls",
        )


@register_transport("anthropic")
class AnthropicTransport(BaseTransport):
    """Anthropic messages transport; ``stop_reason == "tool_use"`` means tool use."""

    def __init__(self, client: Any = None, model: str | None = None) -> None:
        if client is None:
            import anthropic  # pylint: disable=import-outside-toplevel

            client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)
        self._client = client
        self.model = model or settings.ANTHROPIC_MODEL

    @staticmethod
    def to_wire(
        messages: Sequence[Message], with_tools: bool = True
    ) -> tuple[str, List[Dict[str, Any]]]:
        """
        Split out the system prompt and convert the rest into content-block messages.

        The API refuses ``tool_use``/``tool_result`` blocks on a request that defines no tools, so
        with ``with_tools=False`` earlier tool exchanges are rendered as plain text blocks.
        """
        system_parts: List[str] = []
        wire: List[Dict[str, Any]] = []
        call_names: Dict[str, str] = {}

        for msg in messages:
            if msg.role is Role.SYSTEM:
                system_parts.append(_as_text(msg.content))
                continue

            blocks: List[Dict[str, Any]] = []
            if msg.role is Role.TOOL:
                role = "user"
                if with_tools:
                    blocks.append(
                        {
                            "type": "tool_result",
                            "tool_use_id": msg.tool_call_id,
                            "content": _as_text(msg.content),
                        }
                    )
                else:
                    name = call_names.get(msg.tool_call_id or "", msg.tool_call_id)
                    blocks.append(
                        {"type": "text", "text": f"[tool {name} result] {_as_text(msg.content)}"}
                    )
            else:
                role = msg.role.value
                text = _as_text(msg.content)
                if text:
                    blocks.append({"type": "text", "text": text})
                for call in msg.tool_calls:
                    call_names[call.id] = call.name
                    arguments = _arguments_as_dict(call.arguments)
                    if with_tools:
                        blocks.append(
                            {
                                "type": "tool_use",
                                "id": call.id,
                                "name": call.name,
                                "input": arguments,
                            }
                        )
                    else:
                        blocks.append(
                            {
                                "type": "text",
                                "text": f"[tool {call.name} call] {json.dumps(arguments)}",
                            }
                        )
            if not blocks:
                continue

            # Consecutive turns of the same role are merged into one message
            if wire and wire[-1]["role"] == role:
                wire[-1]["content"].extend(blocks)
            else:
                wire.append({"role": role, "content": blocks})

        # The API requires the conversation to open with a user turn
        if wire and wire[0]["role"] != "user":
            wire.insert(0, {"role": "user", "content": [{"type": "text", "text": "Hello."}]})

        return "\n\n".join(system_parts), wire

    def complete(
        self, messages: Sequence[Message], tools: Sequence[ToolDefinition] | None = None
    ) -> RawCompletion:
        import anthropic  # pylint: disable=import-outside-toplevel

        system_prompt, wire = self.to_wire(messages, with_tools=bool(tools))
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": settings.MAX_TOKENS,
            "messages": wire,
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        if tools:
            kwargs["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.parameters,
                }
                for tool in tools
            ]
            kwargs["tool_choice"] = {"type": "auto"}

        try:
            response = self._client.messages.create(**kwargs)
        except anthropic.AnthropicError as exc:
            logger.error("Anthropic request error: %s", str(exc))
            raise TransportError(f"Error calling Anthropic: {exc}") from exc

        # Handle different content block types from Anthropic API
        texts: List[str] = []
        calls: List[ToolCallRequest] = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                calls.append(
                    ToolCallRequest(id=block.id, name=block.name, arguments=dict(block.input))
                )

        logger.debug("Anthropic stop_reason=%s, tool_calls=%d", response.stop_reason, len(calls))
        return RawCompletion(
            text="\n".join(texts) or None,
            tool_calls=calls,
            stop_reason=response.stop_reason,
            wants_tools=response.stop_reason == "tool_use",
        )
