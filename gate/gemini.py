"""
gate/gemini.py - Google Gemini API Gateway

This module implements the ModelGateway interface for the Gemini
generateContent REST endpoint (v1beta).

Wire translation:
- Tools -> one {"functionDeclarations": [...]} block
- assistant -> "model" role; assistant tool calls -> functionCall parts
- tool messages -> "tool" role with a functionResponse part whose
  response is the parsed JSON content (or {"text": content})
- system messages -> systemInstruction
- Reply text parts are joined with newlines; functionCall parts become
  ToolCalls with generated gemini_ ids (Gemini does not issue ids)

Rules:
- API key travels as the ?key= query parameter
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from core.proto import AgentResponse
from core.types import Message, MessageRole, Tool, ToolCall
from .bases import ModelGateway, join_text, synthetic_id

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def _text(content: Any) -> str:
    return "" if content is None else str(content)


def _parse_tool_content(content: Any) -> Dict[str, Any]:
    """Best-effort JSON parse of a tool message's content."""
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError):
        return {"text": _text(content)}
    # functionResponse.response must be an object
    return parsed if isinstance(parsed, dict) else {"result": parsed}


class GeminiGateway(ModelGateway):
    """ModelGateway implementation for the Google Gemini REST API."""

    provider_name = "gemini"

    def __init__(self, model: str, api_key: str, base_url: str = GEMINI_BASE_URL, **kwargs: Any):
        super().__init__(model, api_key=api_key, **kwargs)
        self.base_url = base_url.rstrip("/")

    def _tools_to_gemini(self, tools: Optional[Sequence[Tool]]) -> List[Dict[str, Any]]:
        declarations = [
            {
                "name": t.name,
                "description": t.description or "",
                "parameters": t.parameters or {"type": "object"},
            }
            for t in tools or []
        ]
        return [{"functionDeclarations": declarations}] if declarations else []

    def _message_to_gemini(self, message: Message) -> Optional[Dict[str, Any]]:
        """Convert internal Message to a Gemini content block."""
        if message.role == MessageRole.USER:
            return {"role": "user", "parts": [{"text": _text(message.content)}]}

        if message.role == MessageRole.ASSISTANT:
            parts: List[Dict[str, Any]] = []
            if _text(message.content) or not message.tool_calls:
                parts.append({"text": _text(message.content)})
            for tc in message.tool_calls or ():
                parts.append({"functionCall": {"name": tc.name, "args": tc.parse_arguments()}})
            return {"role": "model", "parts": parts}

        if message.role == MessageRole.TOOL:
            return {
                "role": "tool",
                "parts": [{
                    "functionResponse": {
                        "name": message.name or "tool",
                        "response": _parse_tool_content(message.content),
                    }
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
        contents = []
        system_parts = []
        for message in messages:
            if message.role == MessageRole.SYSTEM:
                system_parts.append({"text": _text(message.content)})
                continue
            block = self._message_to_gemini(message)
            if block:
                contents.append(block)

        body: Dict[str, Any] = {
            "contents": contents,
            "tools": self._tools_to_gemini(tools),
            "generationConfig": {"maxOutputTokens": max_tokens, "temperature": temperature},
        }
        if system_parts:
            body["systemInstruction"] = {"parts": system_parts}
        return body

    def parse_response(self, data: Dict[str, Any]) -> AgentResponse:
        candidates = data.get("candidates") or [{}]
        candidate = candidates[0] or {}
        parts = (candidate.get("content") or {}).get("parts") or []

        texts: List[str] = []
        tool_calls: List[ToolCall] = []
        for part in parts:
            if not isinstance(part, dict):
                continue
            if isinstance(part.get("text"), str):
                texts.append(part["text"])
            call = part.get("functionCall")
            if call and call.get("name"):
                tool_calls.append(ToolCall(
                    id=synthetic_id("gemini"),
                    name=call["name"],
                    arguments=json.dumps(call.get("args") or {}),
                ))

        return AgentResponse(
            content=join_text(texts),
            tool_calls=tool_calls,
            finish_reason=candidate.get("finishReason"),
            usage=data.get("usageMetadata"),
        )

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Tool]] = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> AgentResponse:
        """Generate completion using the Gemini API."""
        body = self.build_request(messages, tools, temperature, max_tokens)
        url = f"{self.base_url}/models/{quote(self.model, safe='')}:generateContent"
        logger.debug(f"POST {url} contents={len(body['contents'])}")

        data = await self._post_json(url, body, params={"key": self.api_key})
        return self.parse_response(data)
