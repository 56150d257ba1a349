"""
boot/wires.py - Dependency Wiring

This module wires up all dependencies for the agent system.
It's the dependency injection container.

Components wired:
- Settings source (core/settings.py)
- Shared HTTP client
- Provider router (gate/)
- Tool registry (tool/)
- Agent loop (flow/)
- Session (core/state.py)

Rules:
- All components created here
- No business logic
- Just instantiation and wiring
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from core.render import Renderer
from core.sandb import Isolation, SandboxRunner
from core.settings import AgentSettings, SettingsSource, static_settings
from core.state import Session
from flow.loops import AgentLoop, DEFAULT_MAX_TURNS
from gate.creds import ProfileCredentialResolver
from gate.router import GatewayFactory, ProviderRouter
from tool.index import ToolRegistry, create_default_registry
from .setup import settings_from_config

logger = logging.getLogger(__name__)


@dataclass
class Dependencies:
    """Container for all agent dependencies.

    This is what gets passed around the application.
    Everything the agent needs is in here.
    """
    config: Dict[str, Any]
    settings: SettingsSource
    client: httpx.AsyncClient
    router: ProviderRouter
    tools: ToolRegistry
    loop: AgentLoop
    session: Session

    async def aclose(self) -> None:
        """Release network resources."""
        await self.tools.aclose()
        await self.client.aclose()


def wire_dependencies(
    config: Dict[str, Any],
    renderer: Optional[Renderer] = None,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[SettingsSource] = None,
    gateway_factory: Optional[GatewayFactory] = None,
) -> Dependencies:
    """Wire up all dependencies.

    Args:
        config: Configuration dictionary from setup.py
        renderer: Front end callbacks (defaults to no-op)
        client: HTTP client to share (created from config if None)
        settings: Settings source (defaults to the config, frozen)
        gateway_factory: Replace real gateways (e.g. the mock gateway)

    Returns:
        Dependencies container with all services
    """
    renderer = renderer or Renderer()
    if settings is None:
        fixed: AgentSettings = settings_from_config(config)
        settings = static_settings(fixed)

    current = settings()
    if client is None:
        client = httpx.AsyncClient(timeout=current.http_timeout, follow_redirects=True)

    resolver = ProfileCredentialResolver(config.get("profile_module", "aipipe"))

    router = ProviderRouter(
        settings,
        renderer=renderer,
        client=client,
        resolver=resolver,
        gateway_factory=gateway_factory,
    )
    tools = create_default_registry(
        settings,
        client=client,
        renderer=renderer,
        resolver=resolver,
        runner=SandboxRunner(
            timeout=current.sandbox_timeout,
            isolation=config.get("sandbox_isolation", Isolation.AUTO),
        ),
    )
    loop = AgentLoop(
        router,
        tools,
        renderer=renderer,
        max_turns=config.get("max_turns", DEFAULT_MAX_TURNS),
    )
    logger.info(
        f"Wired provider={current.provider.value} model={current.resolved_model} "
        f"tools={', '.join(tools.list())}"
    )

    return Dependencies(
        config=config,
        settings=settings,
        client=client,
        router=router,
        tools=tools,
        loop=loop,
        session=Session(),
    )
