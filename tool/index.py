"""
tool/index.py - Tool Registry

This module implements the tool registry for managing available tools.
The registry is the central place where all tools are registered,
discovered and executed.

Responsibilities:
- Register tools
- Look up tools by name
- Expose the tool schema handed to every gateway
- execute_tool(): run a tool by name, always returning a result dict

Rules:
- Tools must have unique names
- Registry is the single source of truth
- execute_tool never raises; unknown tools are an error result
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from core.render import Renderer
from core.sandb import SandboxRunner
from core.settings import SettingsSource
from core.types import ToolSchema
from gate.creds import CredentialResolver
from .bases import BaseTool, error_result

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry for managing tools."""

    def __init__(self):
        self._tools: Dict[str, BaseTool] = {}
        self._schema: Optional[ToolSchema] = None

    def register(self, tool: BaseTool) -> None:
        """Register a tool.

        Raises:
            ValueError: If tool with same name already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool
        self._schema = None

    def get(self, name: str) -> Optional[BaseTool]:
        """Get a tool by name (None if not found)."""
        return self._tools.get(name)

    def list(self) -> List[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_tool_definitions(self) -> ToolSchema:
        """Immutable tool schema shared with every gateway."""
        if self._schema is None:
            self._schema = tuple(tool.to_tool_definition() for tool in self._tools.values())
        return self._schema

    async def execute_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Execute a tool by name.

        Returns:
            The tool's JSON-serializable result; failures are {"error": ...}
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.error(f"Tool not found: {name}")
            return error_result(f"Unknown tool: {name}")
        return await tool.call(arguments)

    async def aclose(self) -> None:
        """Close every registered tool."""
        for tool in self._tools.values():
            await tool.aclose()


def create_default_registry(
    settings: SettingsSource,
    client: Optional[httpx.AsyncClient] = None,
    renderer: Optional[Renderer] = None,
    resolver: Optional[CredentialResolver] = None,
    runner: Optional[SandboxRunner] = None,
) -> ToolRegistry:
    """Create a registry with the three built-in tools.

    Args:
        settings: Settings source read by the tools on every call
        client: Shared HTTP client for the network tools
        renderer: Receives sandbox output
        resolver: Proxy token lookup for remote_model_proxy
        runner: Isolated execution unit for sandboxed_code_exec

    Returns:
        ToolRegistry with web_search, remote_model_proxy, sandboxed_code_exec
    """
    from .search import WebSearchTool
    from .proxy import RemoteModelProxyTool
    from .pyexe import SandboxExecTool

    registry = ToolRegistry()
    registry.register(WebSearchTool(settings, client=client))
    registry.register(RemoteModelProxyTool(settings, client=client, resolver=resolver))
    registry.register(SandboxExecTool(settings, renderer=renderer, runner=runner))
    return registry
