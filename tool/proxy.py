"""
tool/proxy.py - Remote Model Proxy Tool

Lets the agent ask a second model (through the OpenRouter-compatible AI
Pipe proxy) for a short completion.

Rules:
- Token resolved like the proxy gateway, including the profile lookup
- No token, bad status or network failure -> {error, ...}, never raised
- Success -> {"text": <first choice content or "">}
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.settings import SettingsSource
from gate.creds import CredentialResolver, resolve_proxy_token
from gate.openai_compat import PROXY_BASE_URL
from .bases import BaseTool, create_json_schema, error_result

logger = logging.getLogger(__name__)

DEFAULT_PROXY_MODEL = "openai/gpt-4o-mini"


class RemoteModelProxyTool(BaseTool):
    """Call a remote model through the AI Pipe proxy."""

    def __init__(
        self,
        settings: SettingsSource,
        client: Optional[httpx.AsyncClient] = None,
        resolver: Optional[CredentialResolver] = None,
        base_url: str = PROXY_BASE_URL,
    ):
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient()
        self.resolver = resolver
        self.url = f"{base_url.rstrip('/')}/chat/completions"

    @property
    def name(self) -> str:
        return "remote_model_proxy"

    @property
    def description(self) -> str:
        return "Call AI Pipe OpenRouter-compatible chat endpoint to get a short completion."

    @property
    def parameters(self) -> Dict[str, Any]:
        return create_json_schema(
            properties={
                "prompt": {"type": "string"},
                "model": {
                    "type": "string",
                    "description": "Model on AI Pipe",
                    "default": DEFAULT_PROXY_MODEL,
                },
                "max_tokens": {"type": "integer", "default": 200},
            },
            required=["prompt"],
        )

    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        settings = self.settings()
        token = await resolve_proxy_token(settings, self.resolver)
        if not token:
            return error_result(
                "AI Pipe token required (use Provider: AI Pipe or log in via AI Pipe)."
            )

        body = {
            "model": arguments.get("model") or DEFAULT_PROXY_MODEL,
            "messages": [{"role": "user", "content": arguments["prompt"]}],
            "max_tokens": arguments.get("max_tokens", 200),
        }
        try:
            response = await self.client.post(
                self.url,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
                timeout=settings.http_timeout,
            )
        except httpx.HTTPError as e:
            logger.warning(f"AI Pipe request failed: {e}")
            return error_result(f"AI Pipe request failed: {e}")

        if not response.is_success:
            return error_result(
                f"AI Pipe error: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
                detail=response.text,
            )

        data = response.json()
        choices = data.get("choices") or [{}]
        text = ((choices[0] or {}).get("message") or {}).get("content") or ""
        return {"text": text}

    async def aclose(self) -> None:
        """Close the HTTP client if this tool created it."""
        if self._owns_client:
            await self.client.aclose()
