"""
tests/flow/test_loops.py - Agent Loop Tests

Drives AgentLoop with stub routers so the state machine can be checked
without any provider:
- a reply without tool calls ends the run after one round trip
- a model that always calls a tool is stopped at the turn cap
- tool results are correlated with the calls that asked for them
- re-entry while running is ignored
- synthesized Gemini and Anthropic call ids survive a full round trip
"""

import asyncio
import json
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock, call

import httpx
import pytest

from core.proto import AgentResponse
from core.render import RecordingRenderer
from core.settings import AgentSettings, ProviderKind, static_settings
from core.state import Session
from core.types import Message, MessageRole, ToolCall
from flow.loops import AgentLoop, DEFAULT_MAX_TURNS, StopReason
from gate.mock import MockGateway
from gate.router import ProviderRouter
from tool.bases import BaseTool, create_json_schema
from tool.index import ToolRegistry


class EchoTool(BaseTool):
    """Returns its arguments."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo the text back"

    @property
    def parameters(self) -> Dict[str, Any]:
        return create_json_schema({"text": {"type": "string"}}, required=["text"])

    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(arguments)
        return {"echo": arguments["text"]}


class ScriptedRouter:
    """Router stand-in: returns queued replies, then a final answer."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls: List[List[Message]] = []

    async def invoke(self, messages, tools=None):
        self.calls.append(list(messages))
        if self.replies:
            return self.replies.pop(0)
        return AgentResponse(content="final answer")


class AlwaysToolRouter(ScriptedRouter):
    """Router stand-in that asks for a tool on every turn."""

    async def invoke(self, messages, tools=None):
        self.calls.append(list(messages))
        n = len(self.calls)
        return AgentResponse(tool_calls=[ToolCall(id=f"call_{n}", name="echo", arguments='{"text": "again"}')])


class SilentRouter(ScriptedRouter):
    async def invoke(self, messages, tools=None):
        self.calls.append(list(messages))
        return None


class ExplodingRouter(ScriptedRouter):
    async def invoke(self, messages, tools=None):
        raise RuntimeError("kaboom")


@pytest.fixture
def echo():
    return EchoTool()


@pytest.fixture
def registry(echo):
    tools = ToolRegistry()
    tools.register(echo)
    return tools


@pytest.fixture
def renderer():
    return RecordingRenderer()


def test_reply_without_tools_runs_once(registry, renderer):
    router = ScriptedRouter()
    loop = AgentLoop(router, registry, renderer=renderer)
    session = Session()

    result = asyncio.run(loop.submit(session, "hello"))

    assert len(router.calls) == 1
    assert result.success
    assert result.stop_reason == StopReason.COMPLETE
    assert result.final_answer == "final answer"
    assert [m.role for m in session.messages] == [MessageRole.USER, MessageRole.ASSISTANT]
    assert renderer.messages == [("user", "hello"), ("assistant", "final answer")]
    assert renderer.busy_changes == [True, False]
    assert session.running is False


def test_turn_cap_is_enforced(registry, renderer):
    router = AlwaysToolRouter()
    loop = AgentLoop(router, registry, renderer=renderer)
    session = Session()

    result = asyncio.run(loop.submit(session, "loop forever"))

    assert DEFAULT_MAX_TURNS == 8
    assert len(router.calls) == 8
    assert result.steps_taken == 8
    assert result.stop_reason == StopReason.MAX_TURNS
    # user + 8 x (assistant + tool)
    assert len(session.messages) == 1 + 8 * 2
    assert renderer.alerts == []


def test_custom_turn_cap(registry):
    router = AlwaysToolRouter()
    loop = AgentLoop(router, registry, max_turns=3)

    asyncio.run(loop.submit(Session(), "go"))

    assert len(router.calls) == 3


def test_tool_results_follow_their_calls(registry, echo):
    calls = [
        ToolCall(id="call_a", name="echo", arguments='{"text": "one"}'),
        ToolCall(id="call_b", name="echo", arguments='{"text": "two"}'),
    ]
    router = ScriptedRouter([AgentResponse(content="", tool_calls=calls)])
    loop = AgentLoop(router, registry)
    session = Session()

    result = asyncio.run(loop.submit(session, "echo twice"))

    assert result.stop_reason == StopReason.COMPLETE
    assistant, first, second = session.messages[1:4]
    assert [tc.id for tc in assistant.tool_calls] == ["call_a", "call_b"]
    assert (first.tool_call_id, second.tool_call_id) == ("call_a", "call_b")
    assert json.loads(first.content) == {"echo": "one"}
    assert json.loads(second.content) == {"echo": "two"}
    assert first.name == "echo"
    # Executed sequentially, in order
    assert [c["text"] for c in echo.calls] == ["one", "two"]
    # Second round trip saw the tool results
    assert router.calls[1][-1].tool_call_id == "call_b"


def test_tool_only_reply_is_not_rendered(registry, renderer):
    calls = [ToolCall(id="call_a", name="echo", arguments='{"text": "x"}')]
    router = ScriptedRouter([AgentResponse(content="", tool_calls=calls)])
    loop = AgentLoop(router, registry, renderer=renderer)

    asyncio.run(loop.submit(Session(), "go"))

    assert renderer.messages == [("user", "go"), ("assistant", "final answer")]


def test_malformed_arguments_become_error_result(registry, echo):
    calls = [ToolCall(id="call_a", name="echo", arguments="{not json")]
    router = ScriptedRouter([AgentResponse(tool_calls=calls)])
    loop = AgentLoop(router, registry)
    session = Session()

    asyncio.run(loop.submit(session, "go"))

    tool_msg = session.messages[2]
    assert tool_msg.role == MessageRole.TOOL
    assert "Invalid arguments" in json.loads(tool_msg.content)["error"]
    assert echo.calls == []


def test_unknown_tool_becomes_error_result(registry):
    calls = [ToolCall(id="call_a", name="nope", arguments="{}")]
    router = ScriptedRouter([AgentResponse(tool_calls=calls)])
    loop = AgentLoop(router, registry)
    session = Session()

    asyncio.run(loop.submit(session, "go"))

    assert json.loads(session.messages[2].content) == {"error": "Unknown tool: nope"}


def test_no_reply_ends_turn(registry, renderer):
    router = SilentRouter()
    loop = AgentLoop(router, registry, renderer=renderer)
    session = Session()

    result = asyncio.run(loop.submit(session, "hello"))

    assert result.stop_reason == StopReason.NO_REPLY
    assert len(session.messages) == 1
    assert session.running is False


def test_busy_session_is_ignored(registry):
    router = ScriptedRouter()
    loop = AgentLoop(router, registry)
    session = Session()
    session.running = True

    result = asyncio.run(loop.submit(session, "hello"))

    assert result.stop_reason == StopReason.BUSY
    assert router.calls == []
    assert session.messages == []


def test_blank_input_is_ignored(registry):
    router = ScriptedRouter()
    loop = AgentLoop(router, registry)
    session = Session()

    asyncio.run(loop.submit(session, "   "))

    assert router.calls == []
    assert session.messages == []


def test_unexpected_error_is_alerted(registry, renderer):
    loop = AgentLoop(ExplodingRouter(), registry, renderer=renderer)
    session = Session()

    result = asyncio.run(loop.submit(session, "hello"))

    assert not result.success
    assert result.stop_reason == StopReason.ERROR
    assert renderer.alerts == [("danger", "Agent loop error: kaboom")]
    assert renderer.busy_changes == [True, False]
    assert session.running is False


@pytest.mark.asyncio
async def test_concurrent_submit_runs_once(registry):
    started = asyncio.Event()
    release = asyncio.Event()

    class SlowRouter(ScriptedRouter):
        async def invoke(self, messages, tools=None):
            self.calls.append(list(messages))
            started.set()
            await release.wait()
            return AgentResponse(content="done")

    router = SlowRouter()
    loop = AgentLoop(router, registry)
    session = Session()

    first = asyncio.create_task(loop.submit(session, "one"))
    await started.wait()
    second = await loop.submit(session, "two")
    release.set()
    await first

    assert second.stop_reason == StopReason.BUSY
    assert len(router.calls) == 1
    assert [m.content for m in session.messages] == ["one", "done"]


def test_mock_gateway_end_to_end(registry, echo, renderer):
    mock = MockGateway()
    settings = static_settings(AgentSettings(provider=ProviderKind.ANTHROPIC, api_key="test-key"))
    router = ProviderRouter(settings, renderer=renderer, gateway_factory=lambda s, k: mock)
    loop = AgentLoop(router, registry, renderer=renderer)
    session = Session()

    result = asyncio.run(loop.submit(session, '/tool echo {"text": "ping"}'))

    assert result.stop_reason == StopReason.COMPLETE
    assert echo.calls == [{"text": "ping"}]
    assert result.final_answer == 'Tool echo returned: {"echo": "ping"}'
    assert len(mock.calls) == 2


def test_router_receives_tool_schema(registry):
    router = MagicMock()
    router.invoke = AsyncMock(return_value=AgentResponse(content="ok"))
    renderer = MagicMock(spec=RecordingRenderer)
    loop = AgentLoop(router, registry, renderer=renderer)

    asyncio.run(loop.submit(Session(), "hi"))

    messages, tools = router.invoke.await_args.args
    assert [m.content for m in messages] == ["hi"]
    assert [t.name for t in tools] == ["echo"]
    renderer.on_message.assert_any_call("assistant", "ok")
    renderer.on_busy_change.assert_has_calls([call(True), call(False)])


def gateway_loop(provider, handler, registry, renderer):
    """AgentLoop over the real gateway for provider, served by handler."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    settings = static_settings(AgentSettings(provider=provider, api_key="test-key"))
    router = ProviderRouter(settings, renderer=renderer, client=client)
    return AgentLoop(router, registry, renderer=renderer)


def assert_tool_ids_follow_calls(messages, prefix):
    tool_messages = 0
    for index, message in enumerate(messages):
        if message.role != MessageRole.TOOL:
            continue
        tool_messages += 1
        asking = next(m for m in reversed(messages[:index]) if m.role == MessageRole.ASSISTANT)
        assert message.tool_call_id.startswith(prefix)
        assert message.tool_call_id in [tc.id for tc in asking.tool_calls]
    assert tool_messages > 0


def test_gemini_call_ids_round_trip(registry, echo, renderer):
    bodies = []
    replies = [
        {"candidates": [{"content": {"role": "model", "parts": [
            {"functionCall": {"name": "echo", "args": {"text": "one"}}},
            {"functionCall": {"name": "echo", "args": {"text": "two"}}},
        ]}}]},
        {"candidates": [{"content": {"role": "model", "parts": [{"text": "done"}]}}]},
    ]

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=replies[len(bodies) - 1])

    session = Session()
    loop = gateway_loop(ProviderKind.GEMINI, handler, registry, renderer)

    result = asyncio.run(loop.submit(session, "echo twice"))

    assert result.stop_reason == StopReason.COMPLETE
    assert result.final_answer == "done"
    assert echo.calls == [{"text": "one"}, {"text": "two"}]
    assert_tool_ids_follow_calls(session.messages, "gemini_")
    ids = [tc.id for tc in session.messages[1].tool_calls]
    assert len(set(ids)) == 2

    replay = bodies[1]["contents"]
    assert [c["role"] for c in replay] == ["user", "model", "tool", "tool"]
    assert [p["functionCall"] for p in replay[1]["parts"]] == [
        {"name": "echo", "args": {"text": "one"}},
        {"name": "echo", "args": {"text": "two"}},
    ]
    assert replay[2]["parts"][0]["functionResponse"] == {"name": "echo", "response": {"echo": "one"}}
    assert replay[3]["parts"][0]["functionResponse"] == {"name": "echo", "response": {"echo": "two"}}


def test_anthropic_call_ids_round_trip(registry, echo, renderer):
    bodies = []
    replies = [
        {"content": [
            {"type": "text", "text": "Echoing."},
            {"type": "tool_use", "name": "echo", "input": {"text": "one"}},
            {"type": "tool_use", "name": "echo", "input": {"text": "two"}},
        ], "stop_reason": "tool_use"},
        {"content": [{"type": "text", "text": "done"}], "stop_reason": "end_turn"},
    ]

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=replies[len(bodies) - 1])

    session = Session()
    loop = gateway_loop(ProviderKind.ANTHROPIC, handler, registry, renderer)

    result = asyncio.run(loop.submit(session, "echo twice"))

    assert result.stop_reason == StopReason.COMPLETE
    assert result.final_answer == "done"
    assert_tool_ids_follow_calls(session.messages, "claude_")

    replay = bodies[1]["messages"]
    assert [m["role"] for m in replay] == ["user", "assistant", "user", "user"]
    tool_use_ids = [b["id"] for b in replay[1]["content"] if b["type"] == "tool_use"]
    answered = [m["content"][0]["tool_use_id"] for m in replay[2:]]
    assert tool_use_ids == answered
    assert answered == [m.tool_call_id for m in session.messages if m.role == MessageRole.TOOL]
    assert json.loads(replay[2]["content"][0]["content"]) == {"echo": "one"}
