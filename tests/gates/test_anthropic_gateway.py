"""
tests/gates/test_anthropic_gateway.py - Anthropic Adapter Tests
"""

import asyncio
import json

import httpx
import pytest

from core.errors import ProviderError
from core.types import Message, MessageRole, Tool, ToolCall
from gate.anthropic import ANTHROPIC_VERSION, AnthropicGateway

TOOLS = (
    Tool(name="web_search", description="Search", parameters={"type": "object", "properties": {}}),
)


def gateway_with(handler, seen):
    def record(request):
        seen.append(request)
        return handler(request)
    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return AnthropicGateway(model="claude-3-5-sonnet-latest", api_key="a-key", client=client)


def test_request_translation():
    seen = []
    gateway = gateway_with(lambda r: httpx.Response(200, json={"content": [{"type": "text", "text": "ok"}]}), seen)
    transcript = [
        Message(role=MessageRole.SYSTEM, content="be brief"),
        Message(role=MessageRole.USER, content="search x"),
        Message(
            role=MessageRole.ASSISTANT,
            content="",
            tool_calls=(ToolCall(id="toolu_1", name="web_search", arguments='{"q": "x"}'),),
        ),
        Message(role=MessageRole.TOOL, content='{"items": []}', name="web_search", tool_call_id="toolu_1"),
        Message(role=MessageRole.TOOL, content="plain", name="web_search"),
    ]

    asyncio.run(gateway.complete(transcript, tools=TOOLS, temperature=0.7, max_tokens=800))

    request = seen[0]
    body = json.loads(request.content)
    assert str(request.url) == "https://api.anthropic.com/v1/messages"
    assert request.headers["x-api-key"] == "a-key"
    assert request.headers["anthropic-version"] == ANTHROPIC_VERSION == "2023-06-01"
    assert body["model"] == "claude-3-5-sonnet-latest"
    assert body["max_tokens"] == 800
    assert body["system"] == "be brief"
    assert body["tools"] == [
        {"name": "web_search", "description": "Search", "input_schema": {"type": "object", "properties": {}}},
    ]

    messages = body["messages"]
    assert messages[0] == {"role": "user", "content": [{"type": "text", "text": "search x"}]}
    # No empty text block beside the tool_use
    assert messages[1] == {"role": "assistant", "content": [
        {"type": "tool_use", "id": "toolu_1", "name": "web_search", "input": {"q": "x"}},
    ]}
    assert messages[2] == {"role": "user", "content": [{
        "type": "tool_result", "tool_use_id": "toolu_1", "content": '{"items": []}', "is_error": False,
    }]}
    fallback = messages[3]["content"][0]
    assert fallback["tool_use_id"].startswith("tool_")
    assert json.loads(fallback["content"]) == {"text": "plain"}


def test_empty_user_message_is_skipped():
    seen = []
    gateway = gateway_with(lambda r: httpx.Response(200, json={"content": []}), seen)
    asyncio.run(gateway.complete([
        Message(role=MessageRole.USER, content=""),
        Message(role=MessageRole.USER, content="hi"),
    ]))
    assert json.loads(seen[0].content)["messages"] == [
        {"role": "user", "content": [{"type": "text", "text": "hi"}]},
    ]


def test_reply_parsing():
    gateway = gateway_with(lambda r: httpx.Response(200, json={
        "content": [
            {"type": "text", "text": "Checking."},
            {"type": "tool_use", "id": "toolu_9", "name": "web_search", "input": {"q": "x"}},
            {"type": "tool_use", "name": "sandboxed_code_exec", "input": {"code": "return 1"}},
            {"type": "text", "text": "More."},
        ],
        "stop_reason": "tool_use",
        "usage": {"input_tokens": 3},
    }), [])

    response = asyncio.run(gateway.complete([Message(role=MessageRole.USER, content="hi")]))

    assert response.content == "Checking.\nMore."
    assert response.tool_calls[0] == ToolCall(id="toolu_9", name="web_search", arguments='{"q": "x"}')
    assert response.tool_calls[1].id.startswith("claude_")
    assert response.finish_reason == "tool_use"
    assert response.usage == {"input_tokens": 3}


def test_error_status():
    gateway = gateway_with(lambda r: httpx.Response(529, text="overloaded"), [])
    with pytest.raises(ProviderError) as exc_info:
        asyncio.run(gateway.complete([Message(role=MessageRole.USER, content="hi")]))
    assert exc_info.value.status_code == 529
    assert exc_info.value.detail == "overloaded"
