"""Shared fakes for the conversation core tests."""

import threading
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Sequence,
)

import pytest

from concierge.core.dispatcher import ToolDispatcher
from concierge.core.errors import RetrievalUnavailable
from concierge.core.gateway import ModelGateway
from concierge.core.orchestrator import (
    SessionRegistry,
    TurnOrchestrator,
)
from concierge.core.retrieval import RetrievalAugmenter
from concierge.core.schema import (
    Message,
    RawCompletion,
    RetrievalMatch,
    ToolCallRequest,
    ToolDefinition,
)
from concierge.memory.record_store import InMemoryRecordStore
from concierge.tools.hotel import build_hotel_registry


class FakeRetriever:
    """Returns canned matches and counts calls."""

    def __init__(self, matches: List[RetrievalMatch] | None = None, fail: bool = False) -> None:
        self.matches = matches or []
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []

    def search(
        self, query: str, k: int = 1, where: Optional[Dict[str, Any]] = None
    ) -> List[RetrievalMatch]:
        self.calls.append({"query": query, "k": k, "where": where})
        if self.fail:
            raise RetrievalUnavailable("index down")
        return self.matches[:k]


class ScriptedTransport:
    """Replays queued completions and records what each call saw."""

    def __init__(self, *completions: RawCompletion | Exception) -> None:
        self.queue = list(completions)
        self.calls: List[Dict[str, Any]] = []
        self.gate: threading.Event | None = None  # when set, complete() blocks until released

    def complete(
        self, messages: Sequence[Message], tools: Sequence[ToolDefinition] | None = None
    ) -> RawCompletion:
        self.calls.append({"messages": list(messages), "tools": tools})
        if self.gate is not None:
            self.gate.wait(timeout=5)
        item = self.queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: List[str] = []

    def send(self, content: str) -> None:
        self.sent.append(content)


def answer(text: str) -> RawCompletion:
    return RawCompletion(text=text, stop_reason="stop")


def tool_calls(*calls: ToolCallRequest, text: str | None = None) -> RawCompletion:
    return RawCompletion(
        text=text, tool_calls=list(calls), stop_reason="tool_calls", wants_tools=True
    )


BOOKING = {"data": {"id": "XYZ789", "status": "confirmed", "room": "204"}}


@pytest.fixture
def retriever() -> FakeRetriever:
    return FakeRetriever()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore([BOOKING])


@pytest.fixture
def make_orchestrator(retriever, notifier, record_store):
    """Factory building an orchestrator around a scripted transport."""

    def _make(*completions: RawCompletion | Exception, strict_tool_loop: bool = False):
        transport = ScriptedTransport(*completions)
        registry = build_hotel_registry(record_store, notifier)
        orchestrator = TurnOrchestrator(
            augmenter=RetrievalAugmenter(retriever, k=1),
            gateway=ModelGateway(transport),
            dispatcher=ToolDispatcher(registry, max_workers=4),
            registry=registry,
            sessions=SessionRegistry(system_prompt="You are a hotel concierge."),
            strict_tool_loop=strict_tool_loop,
        )
        return orchestrator, transport

    return _make
