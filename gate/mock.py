"""
gate/mock.py - Mock Gateway for Testing

This module implements a mock ModelGateway that replays scripted replies
or reacts to simple commands, without any network access. Used by the
CLI's --mock flag and by tests.

Commands understood in the last user message:
    /tool <name> <json_args>   -> request that tool
"""

import json
import logging
from typing import List, Optional, Sequence

from core.proto import AgentResponse
from core.types import Message, MessageRole, Tool, ToolCall
from .bases import ModelGateway

logger = logging.getLogger("mock_gate")


class MockGateway(ModelGateway):
    """A mock gateway that returns scripted responses."""

    provider_name = "mock"

    def __init__(self, model: str = "mock-model", responses: Optional[List[AgentResponse]] = None):
        super().__init__(model)
        self.responses = list(responses or [])
        self.calls: List[List[Message]] = []

    def add_response(self, content: str = "", tool_calls: Optional[List[ToolCall]] = None) -> None:
        """Queue a reply."""
        self.responses.append(AgentResponse(content=content, tool_calls=list(tool_calls or [])))

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Tool]] = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> AgentResponse:
        """Return the next scripted reply, or react to the last message."""
        self.calls.append(list(messages))

        if self.responses:
            return self.responses.pop(0)

        last = messages[-1] if messages else None
        if last is not None and last.role == MessageRole.TOOL:
            return AgentResponse(content=f"Tool {last.name} returned: {last.content}")

        last_msg = str(last.content) if last is not None else ""

        # Format: /tool <name> <json_args>
        if last_msg.strip().startswith("/tool"):
            rest = last_msg.strip()[len("/tool"):].strip()
            name, _, args_str = rest.partition(" ")
            try:
                json.loads(args_str or "{}")
            except json.JSONDecodeError as e:
                return AgentResponse(content=f"Error parsing mock tool command: {e}")
            return AgentResponse(
                content="Executing mock tool invocation.",
                tool_calls=[ToolCall(id=f"mock_call_{len(self.calls)}", name=name, arguments=args_str or "{}")],
                finish_reason="tool_calls",
            )

        return AgentResponse(
            content=(
                "MOCK SUCCESS: I received your message. I am a mock agent. "
                "Use /tool <name> <json> to force a tool call."
            ),
            finish_reason="stop",
        )
