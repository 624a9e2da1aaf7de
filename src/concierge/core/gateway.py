"""
Model invocation gateway.

Sends the context snapshot (and optionally the tool catalog) to a transport and classifies the
completion into a :class:`FinalAnswer` or a :class:`ToolCallRequested`.  Provider-specific
response shapes stay inside the transports; this module only sees :class:`RawCompletion`.
"""

import logging
from typing import (
    Protocol,
    Sequence,
)

from concierge.core.context import ConversationContext
from concierge.core.errors import TransportError
from concierge.core.schema import (
    FinalAnswer,
    Message,
    ModelResponse,
    RawCompletion,
    ToolCallRequested,
    ToolDefinition,
)

logger = logging.getLogger(__name__)


class ModelTransport(Protocol):
    """Raw language-model call.  Tool choice is always ``auto`` when *tools* is given."""

    def complete(
        self, messages: Sequence[Message], tools: Sequence[ToolDefinition] | None = None
    ) -> RawCompletion:
        """Return the provider's completion or raise :class:`TransportError`."""


def is_tool_invocation(raw: RawCompletion) -> bool:
    """True when the completion's termination signal asks for tools and carries calls."""
    return raw.wants_tools and bool(raw.tool_calls)


class ModelGateway:
    """Classifies transport completions; never retries and never swallows failures."""

    def __init__(self, transport: ModelTransport) -> None:
        self._transport = transport

    def invoke(
        self,
        context: ConversationContext,
        catalog: Sequence[ToolDefinition] | None = None,
    ) -> ModelResponse:
        messages = context.snapshot()
        logger.debug(
            "Invoking model with %d messages and %d tools", len(messages), len(catalog or ())
        )
        try:
            raw = self._transport.complete(messages, tools=list(catalog) if catalog else None)
        except TransportError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Model transport raised an unexpected error")
            raise TransportError(f"Model transport failed: {exc}") from exc

        if is_tool_invocation(raw):
            logger.info(
                "Model requested %d tool call(s): %s",
                len(raw.tool_calls),
                [call.name for call in raw.tool_calls],
            )
            return ToolCallRequested(calls=list(raw.tool_calls), text=raw.text or None)

        if raw.wants_tools:
            logger.warning("Model signalled tool use without any calls; treating as answer")
        if not raw.text or not raw.text.strip():
            logger.error("Model returned no usable answer (stop_reason=%s)", raw.stop_reason)
            raise TransportError(
                f"Model returned an empty completion (stop_reason={raw.stop_reason})"
            )
        return FinalAnswer(text=raw.text)
