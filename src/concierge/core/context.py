"""Append-only, ordered message log owned by one conversation session."""

import logging
from typing import (
    Iterable,
    List,
    Set,
    Tuple,
)

from concierge.core.errors import InvalidSequence
from concierge.core.schema import (
    Message,
    Role,
)

logger = logging.getLogger(__name__)


class ConversationContext:
    """
    Ordered history of messages replayed verbatim to the model.

    A ``tool`` message is accepted only after the ``assistant`` message that requested it, and
    only once per requested call id.
    """

    def __init__(self, system_prompt: str | None = None) -> None:
        self._messages: List[Message] = []
        self._requested: Set[str] = set()
        self._answered: Set[str] = set()
        if system_prompt:
            self.append(Message.system(system_prompt))

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def append(self, message: Message) -> None:
        """Validate *message* against the ordering invariant and add it to the end."""
        self._validate(message)
        if message.role is Role.ASSISTANT:
            self._requested.update(call.id for call in message.tool_calls)
        elif message.role is Role.TOOL:
            self._answered.add(message.tool_call_id)  # type: ignore[arg-type]
        self._messages.append(message)
        logger.debug("Appended %s message (len=%d)", message.role.value, len(self._messages))

    def extend(self, messages: Iterable[Message]) -> None:
        """Append each message in order."""
        for message in messages:
            self.append(message)

    def snapshot(self) -> Tuple[Message, ...]:
        """Return the full history in append order as a read-only tuple."""
        return tuple(self._messages)

    def pending_tool_calls(self) -> Set[str]:
        """Call ids requested by the model that have no tool message yet."""
        return self._requested - self._answered

    def fork(self) -> "ConversationContext":
        """Return an independent copy sharing the history recorded so far."""
        copy = ConversationContext()
        copy._messages = list(self._messages)
        copy._requested = set(self._requested)
        copy._answered = set(self._answered)
        return copy

    def __len__(self) -> int:
        return len(self._messages)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _validate(self, message: Message) -> None:
        if message.role is Role.TOOL:
            call_id = message.tool_call_id
            if not call_id:
                raise InvalidSequence("Tool message is missing its tool_call_id.")
            if call_id not in self._requested:
                raise InvalidSequence(
                    f"Tool message '{call_id}' has no preceding assistant tool request."
                )
            if call_id in self._answered:
                raise InvalidSequence(f"Tool call '{call_id}' has already been answered.")
            return

        if message.tool_call_id is not None:
            raise InvalidSequence(f"Only tool messages may carry a tool_call_id ({message.role}).")
        if message.tool_calls and message.role is not Role.ASSISTANT:
            raise InvalidSequence("Only assistant messages may request tool calls.")
        if message.role is Role.ASSISTANT and message.tool_calls:
            ids = [call.id for call in message.tool_calls]
            if len(set(ids)) != len(ids) or self._requested.intersection(ids):
                raise InvalidSequence(f"Duplicate tool call ids in request: {ids}")
