"""Tool module - Agent tools for interacting with the world."""

from .bases import BaseTool, create_json_schema, error_result
from .index import ToolRegistry, create_default_registry
from .proxy import RemoteModelProxyTool
from .pyexe import SandboxExecTool
from .search import WebSearchTool

__all__ = [
    "BaseTool",
    "create_json_schema",
    "error_result",
    "ToolRegistry",
    "create_default_registry",
    "RemoteModelProxyTool",
    "SandboxExecTool",
    "WebSearchTool",
]
