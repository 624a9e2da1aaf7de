"""Provider transports, exercised against stand-in SDK clients."""

from types import SimpleNamespace

import anthropic
import httpx
import openai
import pytest

from concierge.core.errors import TransportError
from concierge.core.schema import (
    Message,
    ToolCallRequest,
    ToolDefinition,
)
from concierge.llm.transports import (
    AnthropicTransport,
    OpenAITransport,
    load_transport,
)

CATALOG = [
    ToolDefinition(
        name="getBookingStatus",
        description="Get booking status/informations",
        parameters={
            "type": "object",
            "properties": {"bookingId": {"type": "string"}},
            "required": ["bookingId"],
        },
    )
]

CONVERSATION = [
    Message.system("You are a concierge."),
    Message.assistant("Answer the next question using the following information: pool 8-20"),
    Message.user("status of ABC123?"),
    Message.assistant(
        tool_calls=[
            ToolCallRequest(
                id="call_1", name="getBookingStatus", arguments='{"bookingId": "ABC123"}'
            )
        ]
    ),
    Message.tool("call_1", '{"error": true}'),
]


class _Recorder:
    """Mimics ``client.<namespace>.create`` and records kwargs."""

    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.kwargs: dict = {}

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.result


def _openai_client(recorder: _Recorder) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=recorder))


def _anthropic_client(recorder: _Recorder) -> SimpleNamespace:
    return SimpleNamespace(messages=recorder)


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------
def test_openai_tool_calls_response() -> None:
    tool_call = SimpleNamespace(
        id="call_9",
        function=SimpleNamespace(name="getBookingStatus", arguments='{"bookingId": "A1"}'),
    )
    resp = SimpleNamespace(
        choices=[
            SimpleNamespace(
                finish_reason="tool_calls",
                message=SimpleNamespace(content=None, tool_calls=[tool_call]),
            )
        ]
    )
    recorder = _Recorder(resp)

    raw = OpenAITransport(client=_openai_client(recorder), model="gpt-4o-mini").complete(
        CONVERSATION[:3], CATALOG
    )

    assert raw.wants_tools
    assert raw.tool_calls == [
        ToolCallRequest(id="call_9", name="getBookingStatus", arguments='{"bookingId": "A1"}')
    ]
    assert recorder.kwargs["tool_choice"] == "auto"
    assert recorder.kwargs["tools"][0]["function"]["name"] == "getBookingStatus"


def test_openai_text_response_without_tools() -> None:
    resp = SimpleNamespace(
        choices=[
            SimpleNamespace(
                finish_reason="stop", message=SimpleNamespace(content="Hello", tool_calls=None)
            )
        ]
    )
    recorder = _Recorder(resp)

    raw = OpenAITransport(client=_openai_client(recorder), model="m").complete(CONVERSATION[:3])

    assert not raw.wants_tools
    assert raw.text == "Hello"
    assert "tools" not in recorder.kwargs and "tool_choice" not in recorder.kwargs


def test_openai_wire_format() -> None:
    wire = OpenAITransport.to_wire(CONVERSATION)

    assert [m["role"] for m in wire] == ["system", "assistant", "user", "assistant", "tool"]
    assert wire[3]["tool_calls"][0]["function"]["arguments"] == '{"bookingId": "ABC123"}'
    assert wire[4] == {"role": "tool", "tool_call_id": "call_1", "content": '{"error": true}'}


def test_openai_errors_become_transport_errors() -> None:
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))
    transport = OpenAITransport(client=_openai_client(_Recorder(error=error)), model="m")

    with pytest.raises(TransportError):
        transport.complete(CONVERSATION[:3])


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------
def test_anthropic_tool_use_response() -> None:
    resp = SimpleNamespace(
        stop_reason="tool_use",
        content=[
            SimpleNamespace(type="text", text="Let me check."),
            SimpleNamespace(
                type="tool_use", id="toolu_1", name="getBookingStatus", input={"bookingId": "A1"}
            ),
        ],
    )
    recorder = _Recorder(resp)

    raw = AnthropicTransport(client=_anthropic_client(recorder), model="m").complete(
        CONVERSATION[:3], CATALOG
    )

    assert raw.wants_tools
    assert raw.text == "Let me check."
    assert raw.tool_calls[0].arguments == {"bookingId": "A1"}
    assert recorder.kwargs["tool_choice"] == {"type": "auto"}
    assert recorder.kwargs["tools"][0]["input_schema"]["required"] == ["bookingId"]
    assert recorder.kwargs["system"] == "You are a concierge."


def test_anthropic_wire_format() -> None:
    system, wire = AnthropicTransport.to_wire(CONVERSATION)

    assert system == "You are a concierge."
    # Leading grounding turn is preceded by a user opener; tool result rides a user turn
    assert [m["role"] for m in wire] == ["user", "assistant", "user", "assistant", "user"]
    assert wire[3]["content"][0] == {
        "type": "tool_use",
        "id": "call_1",
        "name": "getBookingStatus",
        "input": {"bookingId": "ABC123"},
    }
    assert wire[4]["content"][0]["type"] == "tool_result"
    assert wire[4]["content"][0]["tool_use_id"] == "call_1"


def test_anthropic_request_without_tools_flattens_tool_history() -> None:
    resp = SimpleNamespace(
        stop_reason="end_turn", content=[SimpleNamespace(type="text", text="No such booking.")]
    )
    recorder = _Recorder(resp)

    raw = AnthropicTransport(client=_anthropic_client(recorder), model="m").complete(
        CONVERSATION, tools=None
    )

    assert raw.text == "No such booking."
    assert "tools" not in recorder.kwargs
    assert "tool_choice" not in recorder.kwargs
    blocks = [block for m in recorder.kwargs["messages"] for block in m["content"]]
    assert {block["type"] for block in blocks} == {"text"}
    assert blocks[-2]["text"] == '[tool getBookingStatus call] {"bookingId": "ABC123"}'
    assert blocks[-1]["text"] == '[tool getBookingStatus result] {"error": true}'


def test_anthropic_errors_become_transport_errors() -> None:
    request = httpx.Request("POST", "https://api.anthropic.com")
    error = anthropic.APIConnectionError(request=request)
    transport = AnthropicTransport(client=_anthropic_client(_Recorder(error=error)), model="m")

    with pytest.raises(TransportError):
        transport.complete(CONVERSATION[:3])


def test_unknown_transport() -> None:
    with pytest.raises(ValueError):
        load_transport("carrier-pigeon")
