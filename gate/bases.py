"""
gate/bases.py - Model Gateway Interface

This module defines the abstract interface for model gateways.
All provider adapters (OpenAI, the OpenRouter-compatible proxy, Gemini,
Anthropic) implement this interface.

Responsibilities:
- Define the standard interface for model communication
- Translate canonical messages and tools to the provider's wire format
- Translate the provider's reply back into an AgentResponse
- Share HTTP plumbing (client ownership, status checks, JSON decoding)

Rules:
- Only depends on core/
- One gateway instance = one credential + one model
- Non-2xx responses raise ProviderError with the response body as detail
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import httpx

from core.errors import ProviderError
from core.proto import AgentResponse
from core.types import Message, Tool

logger = logging.getLogger(__name__)


def synthetic_id(prefix: str) -> str:
    """Generate a locally unique tool-call id, e.g. gemini_3f9a0c1b2d4e."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class ModelGateway(ABC):
    """Abstract base class for model gateways.

    A gateway handles communication with a language model backend.
    It translates between our internal format and the model's format.
    """

    #: Short provider label used in logs and error messages
    provider_name = "model"

    def __init__(
        self,
        model: str,
        api_key: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = 60.0,
    ):
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    @abstractmethod
    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Tool]] = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> AgentResponse:
        """Generate a completion from the model.

        Args:
            messages: Conversation history
            tools: Available tools (sent in the provider's native shape)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            AgentResponse with the model's output

        Raises:
            ProviderError: If the provider cannot be reached or rejects the call
        """
        pass

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST a JSON body and return the decoded JSON reply.

        The timeout is applied per request, so a shared client follows the
        current settings.
        """
        try:
            response = await self.client.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json", **(headers or {})},
                params=params,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"{self.provider_name} request failed: {e}")
            raise ProviderError(f"{self.provider_name} request failed: {e}") from e

        if not response.is_success:
            body = response.text
            logger.error(f"{self.provider_name} API error {response.status_code}: {body[:200]}")
            raise ProviderError(
                f"{response.status_code} {response.reason_phrase}: {body}",
                status_code=response.status_code,
                detail=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.provider_name} returned invalid JSON",
                status_code=response.status_code,
                detail=response.text,
            ) from e
        if not isinstance(data, dict):
            raise ProviderError(
                f"{self.provider_name} returned an unexpected payload",
                status_code=response.status_code,
                detail=response.text,
            )
        return data

    async def close(self) -> None:
        """Close the HTTP client if this gateway created it."""
        if self._owns_client:
            await self.client.aclose()


def join_text(parts: List[str]) -> str:
    """Concatenate text fragments with newline separators.

    Leading empty fragments do not produce a leading newline.
    """
    text = ""
    for part in parts:
        text += ("\n" if text else "") + part
    return text
