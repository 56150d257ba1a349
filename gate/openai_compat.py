"""
gate/openai_compat.py - OpenAI-Compatible Adapters

This module implements the ModelGateway interface for servers that speak
the OpenAI chat-completions format:

- OpenAIGateway: api.openai.com
- ProxyGateway: the OpenRouter-compatible AI Pipe proxy

Responsibilities:
- Sanitize the transcript (no empty tool_calls, null content beside calls)
- Send tools in the native function format
- Read the first choice message, which is already canonical

Rules:
- Bearer token authentication
- Non-2xx responses raise ProviderError with the body attached
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from core.proto import AgentResponse
from core.sanitize import sanitize_messages
from core.types import Message, Tool, ToolCall
from .bases import ModelGateway, synthetic_id

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
PROXY_BASE_URL = "https://aipipe.org/openrouter/v1"


class OpenAICompatGateway(ModelGateway):
    """Generic adapter for OpenAI-compatible chat-completions APIs."""

    provider_name = "openai-compatible"

    def __init__(self, base_url: str, model: str, api_key: str = "", **kwargs: Any):
        super().__init__(model, api_key=api_key.strip(), **kwargs)
        self.base_url = base_url.rstrip("/")

    def _tool_to_dict(self, tool: Tool) -> Dict[str, Any]:
        """Convert internal Tool to OpenAI function format."""
        return tool.to_openai()

    def _parse_tool_calls(self, message: Dict[str, Any]) -> List[ToolCall]:
        """Parse tool calls from the reply message."""
        parsed_calls = []
        for tc in message.get("tool_calls") or []:
            if not tc:
                continue
            function = tc.get("function") or {}
            name = function.get("name")
            if not name:
                continue
            arguments = function.get("arguments")
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments or {})
            parsed_calls.append(ToolCall(
                id=tc.get("id") or synthetic_id("call"),
                name=name,
                arguments=arguments,
            ))
        return parsed_calls

    def build_request(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Tool]],
        temperature: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        request_data: Dict[str, Any] = {
            "model": self.model,
            "messages": sanitize_messages(messages),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if tools:
            request_data["tools"] = [self._tool_to_dict(t) for t in tools]
        return request_data

    def parse_response(self, data: Dict[str, Any]) -> AgentResponse:
        choices = data.get("choices") or []
        if not choices:
            return AgentResponse(usage=data.get("usage"))

        choice = choices[0] or {}
        message = choice.get("message") or {}
        content = message.get("content")

        return AgentResponse(
            content=content if isinstance(content, str) else "",
            tool_calls=self._parse_tool_calls(message),
            finish_reason=choice.get("finish_reason"),
            usage=data.get("usage"),
        )

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Tool]] = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> AgentResponse:
        """Generate completion."""
        request_data = self.build_request(messages, tools, temperature, max_tokens)
        url = f"{self.base_url}/chat/completions"
        logger.debug(f"POST {url} model={self.model} messages={len(request_data['messages'])}")

        data = await self._post_json(
            url,
            request_data,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        return self.parse_response(data)


class OpenAIGateway(OpenAICompatGateway):
    """OpenAI chat completions."""

    provider_name = "openai"

    def __init__(self, model: str, api_key: str, **kwargs: Any):
        super().__init__(OPENAI_BASE_URL, model, api_key=api_key, **kwargs)


class ProxyGateway(OpenAICompatGateway):
    """AI Pipe proxy (OpenRouter-compatible model ids such as openai/gpt-4o-mini)."""

    provider_name = "aipipe"

    def __init__(self, model: str, api_key: str, **kwargs: Any):
        super().__init__(PROXY_BASE_URL, model, api_key=api_key, **kwargs)
