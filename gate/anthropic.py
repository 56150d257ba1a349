"""
gate/anthropic.py - Anthropic Messages API Gateway

This module implements the ModelGateway interface for Anthropic's
/v1/messages endpoint.

Wire translation:
- Tools map parameters -> input_schema
- user/assistant messages -> text blocks; assistant tool calls are
  replayed as tool_use blocks so tool results have something to answer
- tool messages -> a user message holding one tool_result block
- system messages -> the top-level "system" field
- Reply text blocks are joined with newlines; tool_use blocks become
  ToolCalls (block id, or a generated claude_ id)

Rules:
- x-api-key header plus anthropic-version header
- Empty text blocks are never sent (the API rejects them)
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from core.proto import AgentResponse
from core.types import Message, MessageRole, Tool, ToolCall
from .bases import ModelGateway, join_text, synthetic_id

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


def _text(content: Any) -> str:
    return "" if content is None else str(content)


def _reserialize(content: Any) -> str:
    """Re-serialize tool content as JSON ({"text": ...} if it is not JSON)."""
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError):
        parsed = {"text": _text(content)}
    return json.dumps(parsed)


class AnthropicGateway(ModelGateway):
    """ModelGateway implementation for Anthropic Claude models."""

    provider_name = "anthropic"

    def __init__(self, model: str, api_key: str, url: str = ANTHROPIC_URL, **kwargs: Any):
        super().__init__(model, api_key=api_key, **kwargs)
        self.url = url

    def _tools_to_anthropic(self, tools: Optional[Sequence[Tool]]) -> List[Dict[str, Any]]:
        return [
            {
                "name": t.name,
                "description": t.description or "",
                "input_schema": t.parameters or {"type": "object"},
            }
            for t in tools or []
        ]

    def _message_to_anthropic(self, message: Message) -> Optional[Dict[str, Any]]:
        if message.role in (MessageRole.USER, MessageRole.ASSISTANT):
            blocks: List[Dict[str, Any]] = []
            text = _text(message.content)
            if text:
                blocks.append({"type": "text", "text": text})
            for tc in message.tool_calls or ():
                blocks.append({
                    "type": "tool_use",
                    "id": tc.id,
                    "name": tc.name,
                    "input": tc.parse_arguments(),
                })
            if not blocks:
                return None
            return {"role": message.role.value, "content": blocks}

        if message.role == MessageRole.TOOL:
            return {
                "role": "user",
                "content": [{
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id or synthetic_id("tool"),
                    "content": _reserialize(message.content),
                    "is_error": False,
                }],
            }

        return None

    def build_request(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Tool]],
        temperature: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        converted = []
        system = []
        for message in messages:
            if message.role == MessageRole.SYSTEM:
                system.append(_text(message.content))
                continue
            block = self._message_to_anthropic(message)
            if block:
                converted.append(block)

        body: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "tools": self._tools_to_anthropic(tools),
            "messages": converted,
        }
        if system:
            body["system"] = "\n\n".join(system)
        return body

    def parse_response(self, data: Dict[str, Any]) -> AgentResponse:
        texts: List[str] = []
        tool_calls: List[ToolCall] = []
        for block in data.get("content") or []:
            if not isinstance(block, dict):
                continue
            if block.get("type") == "text" and isinstance(block.get("text"), str):
                texts.append(block["text"])
            elif block.get("type") == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.get("id") or synthetic_id("claude"),
                    name=block.get("name") or "",
                    arguments=json.dumps(block.get("input") or {}),
                ))

        return AgentResponse(
            content=join_text(texts),
            tool_calls=tool_calls,
            finish_reason=data.get("stop_reason"),
            usage=data.get("usage"),
        )

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Tool]] = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> AgentResponse:
        """Generate completion using the Anthropic Messages API."""
        body = self.build_request(messages, tools, temperature, max_tokens)
        logger.debug(f"POST {self.url} messages={len(body['messages'])}")

        data = await self._post_json(
            self.url,
            body,
            headers={"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION},
        )
        return self.parse_response(data)
