"""
tool/bases.py - Tool Interface

Every capability the model can invoke (web search, the remote model
proxy, sandboxed code) is a BaseTool subclass.

Responsibilities:
- Declare name, description and JSON-schema parameters
- Parameter validation against the tool's JSON schema
- Fold every failure into a JSON error result

Rules:
- Tools never talk to the model; they only return JSON-serializable dicts
- A tool result with an "error" key is a failure the model can read
- Nothing raises past call()
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from jsonschema import validate, ValidationError

from core.errors import ToolError
from core.types import Tool

logger = logging.getLogger(__name__)


def error_result(message: str, **extra: Any) -> Dict[str, Any]:
    """Build a tool error result."""
    return {"error": message, **extra}


class BaseTool(ABC):
    """A named capability with a JSON-schema argument contract.

    Subclasses provide name, description, parameters and execute();
    callers go through call(), which validates and catches.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Shown to the model when it picks a tool."""
        pass

    @property
    @abstractmethod
    def parameters(self) -> Dict[str, Any]:
        """JSON schema of the arguments object."""
        pass

    @abstractmethod
    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Execute the tool with given arguments.

        Args:
            arguments: Tool arguments (validated against schema)

        Returns:
            JSON-serializable result (with an "error" key on failure)
        """
        pass

    def to_tool_definition(self) -> Tool:
        """Convert this tool to a Tool definition sent to the model."""
        return Tool(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )

    def apply_defaults(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Fill in schema defaults for missing optional parameters."""
        filled = dict(arguments)
        for key, spec in self.parameters.get("properties", {}).items():
            if key not in filled and "default" in spec:
                filled[key] = spec["default"]
        return filled

    async def call(self, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Validate arguments, execute, and capture any failure.

        Validation catches hallucinated or mistyped arguments early with a
        clear error message.
        """
        arguments = arguments if isinstance(arguments, dict) else {}
        try:
            validate(instance=arguments, schema=self.parameters)
        except ValidationError as ve:
            return error_result(f"Invalid arguments: {ve.message}")

        try:
            return await self.execute(self.apply_defaults(arguments))
        except ToolError as e:
            return error_result(str(e))
        except Exception as e:
            logger.error(f"Tool {self.name} failed: {e}", exc_info=True)
            return error_result(str(e) or type(e).__name__)

    async def aclose(self) -> None:
        """Release resources the tool created (network clients)."""
        pass


def create_json_schema(
    properties: Dict[str, Dict[str, Any]],
    required: Optional[list] = None,
) -> Dict[str, Any]:
    """Helper to create JSON schema for tool parameters.

    Args:
        properties: Parameter definitions
        required: List of required parameter names

    Returns:
        JSON schema object
    """
    schema = {
        "type": "object",
        "properties": properties,
    }

    if required:
        schema["required"] = required

    return schema
