"""
gate/router.py - Provider Dispatch

The router is the agent loop's single entry point to a model. For every
call it reads the current settings, resolves and validates the
credential, builds the gateway for the selected provider and invokes it.

Responsibilities:
- Map ProviderKind -> gateway class (closed set)
- Proxy token discovery through the injected CredentialResolver
- Turn every failure into "no reply" plus a renderer alert

Rules:
- invoke() never raises for provider or configuration problems
- Configuration problems are caught before any network call
- A missing proxy login triggers on_redirect and returns None
"""

import logging
from typing import Callable, Dict, Optional, Sequence, Type

import httpx

from core.errors import ConfigurationError, ProviderError
from core.proto import AgentResponse
from core.render import Renderer
from core.settings import AgentSettings, ProviderKind, SettingsSource
from core.types import Message, Tool
from .anthropic import AnthropicGateway
from .bases import ModelGateway
from .creds import CredentialResolver, login_url, validate_credential
from .gemini import GeminiGateway
from .openai_compat import OpenAIGateway, ProxyGateway

logger = logging.getLogger(__name__)

GATEWAYS: Dict[ProviderKind, Type[ModelGateway]] = {
    ProviderKind.OPENAI: OpenAIGateway,
    ProviderKind.PROXY: ProxyGateway,
    ProviderKind.GEMINI: GeminiGateway,
    ProviderKind.ANTHROPIC: AnthropicGateway,
}

GatewayFactory = Callable[[AgentSettings, str], ModelGateway]


class ProviderRouter:
    """Dispatches completions to the provider selected in the settings."""

    def __init__(
        self,
        settings: SettingsSource,
        renderer: Optional[Renderer] = None,
        client: Optional[httpx.AsyncClient] = None,
        resolver: Optional[CredentialResolver] = None,
        gateway_factory: Optional[GatewayFactory] = None,
        return_url: str = "",
    ):
        """Initialize the router.

        Args:
            settings: Settings source, read on every call
            renderer: Where alerts and redirects are reported
            client: Shared HTTP client for all gateways
            resolver: Proxy token lookup used when no token is configured
            gateway_factory: Override gateway construction (offline runs, tests)
            return_url: Where the proxy login flow should send the user back
        """
        self.settings = settings
        self.renderer = renderer or Renderer()
        self.client = client
        self.resolver = resolver
        self.gateway_factory = gateway_factory
        self.return_url = return_url

    def create_gateway(self, settings: AgentSettings, api_key: str) -> ModelGateway:
        """Build the gateway for the configured provider."""
        if self.gateway_factory is not None:
            return self.gateway_factory(settings, api_key)

        gateway_cls = GATEWAYS.get(settings.provider)
        if gateway_cls is None:
            raise ConfigurationError(f"Unsupported provider: {settings.provider}")
        return gateway_cls(
            model=settings.resolved_model,
            api_key=api_key,
            client=self.client,
            timeout=settings.http_timeout,
        )

    async def _resolve_key(self, settings: AgentSettings) -> Optional[str]:
        """Credential for this call, or None if the round trip must stop."""
        key = settings.api_key.strip()
        if key or settings.provider != ProviderKind.PROXY:
            return key

        if self.resolver is None:
            self.renderer.on_alert("warning", "Missing API key/token for aipipe.")
            return None

        try:
            token = await self.resolver.resolve()
        except ConfigurationError as e:
            logger.warning(f"Profile lookup failed: {e}")
            self.renderer.on_alert(
                "warning",
                "Could not load AI Pipe profile. Enter your AI Pipe token manually.",
            )
            return None

        if not token:
            url = login_url(self.return_url)
            logger.info(f"No proxy token available, redirecting to {url}")
            self.renderer.on_redirect(url)
            return None
        return token

    async def invoke(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Tool]] = None,
    ) -> Optional[AgentResponse]:
        """Run one completion against the active provider.

        Returns:
            The canonical reply, or None when there is nothing to continue with
        """
        settings = self.settings()
        provider = settings.provider

        key = await self._resolve_key(settings)
        if key is None:
            return None

        try:
            validate_credential(provider, key)
            gateway = self.create_gateway(settings, key)
        except ConfigurationError as e:
            logger.warning(f"Configuration error for {provider.value}: {e}")
            self.renderer.on_alert("warning", str(e))
            return None

        logger.info(f"Calling {provider.value} model={settings.resolved_model}")
        try:
            return await gateway.complete(
                messages,
                tools=tools,
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
            )
        except ProviderError as e:
            logger.error(f"{provider.value} error: {e}")
            self.renderer.on_alert("danger", f"{provider.value} error: {e}")
            return None
        finally:
            await gateway.close()
