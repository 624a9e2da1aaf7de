"""
Tests for the tool dispatcher.

Run with:
$ pytest -q
"""

import threading
import time

from pydantic import BaseModel

from concierge.core.dispatcher import ToolDispatcher
from concierge.core.schema import ToolCallRequest
from concierge.tools import (
    BaseTool,
    ToolRegistry,
)


class AddArgs(BaseModel):
    a: int
    b: int


# This is a stub tool for testing purposes.
class AddTool(BaseTool):
    """Return the sum of two integers (used only for tests)."""

    name = "add"
    description = "Add two integers"
    Args = AddArgs

    def run(self, args: AddArgs) -> str:
        return str(args.a + args.b)


class BrokenTool(BaseTool):
    name = "broken"
    description = "Always fails"

    def run(self, args: BaseModel) -> str:
        raise ConnectionError("record store unreachable")


class SlowTool(BaseTool):
    """Sleeps, recording how many instances run at once."""

    description = "Slow"

    def __init__(self, name: str, tracker: dict) -> None:
        self.name = name  # type: ignore[misc]
        self._tracker = tracker

    def run(self, args: BaseModel) -> str:
        with self._tracker["lock"]:
            self._tracker["active"] += 1
            self._tracker["peak"] = max(self._tracker["peak"], self._tracker["active"])
        time.sleep(0.05)
        with self._tracker["lock"]:
            self._tracker["active"] -= 1
        return self.name


def _dispatcher(*tools: BaseTool) -> ToolDispatcher:
    registry = ToolRegistry()
    for tool in tools:
        registry.register(tool)
    return ToolDispatcher(registry, max_workers=4)


def test_dispatch_success() -> None:
    """Dispatcher should return the tool output paired with the call id."""

    result = _dispatcher(AddTool()).dispatch(
        ToolCallRequest(id="c1", name="add", arguments='{"a": 2, "b": 3}')
    )

    assert result.content == "5"
    assert result.tool_call_id == "c1"
    assert not result.failed


def test_dispatch_accepts_mapping_arguments() -> None:
    result = _dispatcher(AddTool()).dispatch(
        ToolCallRequest(id="c1", name="add", arguments={"a": 1, "b": 1})
    )

    assert result.content == "2"


def test_dispatch_missing_tool() -> None:
    """An unknown tool becomes a failed result, never an exception."""

    result = _dispatcher(AddTool()).dispatch(ToolCallRequest(id="c1", name="not_a_tool"))

    assert result.failed
    assert "not_a_tool" in result.content
    assert result.tool_call_id == "c1"


def test_dispatch_bad_args() -> None:
    """Missing or malformed arguments become a failed result with a diagnostic."""

    dispatcher = _dispatcher(AddTool())

    missing = dispatcher.dispatch(ToolCallRequest(id="c1", name="add", arguments='{"a": 2}'))
    garbled = dispatcher.dispatch(ToolCallRequest(id="c2", name="add", arguments="{a: 2"))
    not_object = dispatcher.dispatch(ToolCallRequest(id="c3", name="add", arguments="[1, 2]"))

    for result in (missing, garbled, not_object):
        assert result.failed
        assert "Invalid arguments" in result.content
    assert "b" in missing.content


def test_dispatch_handler_error() -> None:
    """A handler crash is reported to the model instead of aborting the turn."""

    result = _dispatcher(BrokenTool()).dispatch(ToolCallRequest(id="c1", name="broken"))

    assert result.failed
    assert "record store unreachable" in result.content


def test_dispatch_all_keeps_request_order_and_pairing() -> None:
    dispatcher = _dispatcher(AddTool(), BrokenTool())
    requests = [
        ToolCallRequest(id="c1", name="add", arguments='{"a": 1, "b": 2}'),
        ToolCallRequest(id="c2", name="broken"),
        ToolCallRequest(id="c3", name="add", arguments='{"a": 3, "b": 4}'),
    ]

    results = dispatcher.dispatch_all(requests)

    assert [r.tool_call_id for r in results] == ["c1", "c2", "c3"]
    assert [r.content for r in (results[0], results[2])] == ["3", "7"]
    assert results[1].failed


def test_dispatch_all_runs_different_tools_concurrently() -> None:
    tracker = {"lock": threading.Lock(), "active": 0, "peak": 0}
    dispatcher = _dispatcher(SlowTool("slow_a", tracker), SlowTool("slow_b", tracker))

    results = dispatcher.dispatch_all(
        [ToolCallRequest(id="c1", name="slow_a"), ToolCallRequest(id="c2", name="slow_b")]
    )

    assert [r.content for r in results] == ["slow_a", "slow_b"]
    assert tracker["peak"] == 2


def test_dispatch_all_serializes_calls_to_the_same_tool() -> None:
    tracker = {"lock": threading.Lock(), "active": 0, "peak": 0}
    dispatcher = _dispatcher(SlowTool("slow_a", tracker))

    results = dispatcher.dispatch_all(
        [ToolCallRequest(id=f"c{i}", name="slow_a") for i in range(3)]
    )

    assert len(results) == 3
    assert tracker["peak"] == 1


def test_dispatch_all_empty() -> None:
    assert _dispatcher(AddTool()).dispatch_all([]) == []


def test_registry_rejects_duplicate_names() -> None:
    registry = ToolRegistry()
    registry.register(AddTool())

    try:
        registry.register(AddTool())
    except ValueError as exc:
        assert "add" in str(exc)
    else:  # pragma: no cover
        raise AssertionError("ValueError was not raised")
