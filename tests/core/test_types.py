"""
tests/core/test_types.py - Message Model Tests

Covers ToolCall argument parsing, Message serialization and the
AgentResponse -> transcript message conversion.
"""

from dataclasses import FrozenInstanceError

import pytest

from core.proto import AgentResponse
from core.types import Message, MessageRole, Tool, ToolCall


class TestToolCall:
    """ToolCall.parse_arguments never raises."""

    def test_parse_valid_object(self):
        tc = ToolCall(id="call_1", name="web_search", arguments='{"q": "python", "num": 2}')
        assert tc.parse_arguments() == {"q": "python", "num": 2}

    @pytest.mark.parametrize("raw", ["{not json", "", "[1, 2]", '"text"', "42"])
    def test_parse_malformed_yields_empty_dict(self, raw):
        tc = ToolCall(id="call_1", name="web_search", arguments=raw)
        assert tc.parse_arguments() == {}

    def test_to_dict_openai_shape(self):
        tc = ToolCall(id="call_9", name="sandboxed_code_exec", arguments='{"code": "return 1"}')
        assert tc.to_dict() == {
            "id": "call_9",
            "type": "function",
            "function": {"name": "sandboxed_code_exec", "arguments": '{"code": "return 1"}'},
        }


class TestMessage:
    """Message.to_dict only carries fields that are present."""

    def test_user_message(self):
        msg = Message(role=MessageRole.USER, content="hi")
        assert msg.to_dict() == {"role": "user", "content": "hi"}

    def test_assistant_without_calls_has_no_tool_calls_key(self):
        msg = Message(role=MessageRole.ASSISTANT, content="done", tool_calls=())
        assert "tool_calls" not in msg.to_dict()

    def test_tool_message_keeps_correlation(self):
        msg = Message(role=MessageRole.TOOL, content="{}", name="web_search", tool_call_id="call_1")
        data = msg.to_dict()
        assert data["tool_call_id"] == "call_1"
        assert data["name"] == "web_search"

    def test_messages_are_immutable(self):
        msg = Message(role=MessageRole.USER, content="hi")
        with pytest.raises(FrozenInstanceError):
            msg.content = "changed"


class TestAgentResponse:
    """AgentResponse is the canonical reply of every gateway."""

    def test_complete_reply(self):
        response = AgentResponse(content="The answer is 4.")
        assert response.tool_calls == []

        message = response.to_message()
        assert message.role == MessageRole.ASSISTANT
        assert message.tool_calls is None

    def test_tool_call_reply(self):
        calls = [ToolCall(id="call_1", name="web_search", arguments='{"q": "x"}')]
        response = AgentResponse(content="", tool_calls=calls)

        message = response.to_message()
        assert message.content == ""
        assert message.tool_calls == tuple(calls)


def test_tool_to_openai():
    tool = Tool(name="web_search", description="Search", parameters={"type": "object"})
    assert tool.to_openai() == {
        "type": "function",
        "function": {"name": "web_search", "description": "Search", "parameters": {"type": "object"}},
    }
