"""
core/types.py - Message, Tool, and ToolCall Types

This module defines the canonical conversation types shared by every
provider gateway, the tool registry and the agent loop.

Core types:
- Message: A single message in a conversation (user, assistant, system, tool)
- ToolCall: A tool invocation requested by the model (raw JSON arguments)
- Tool: Definition of a tool including name, description, and parameter schema

Rules:
- This module has NO dependencies on other agent modules
- Messages are immutable; the transcript only ever grows
- tool_calls is None unless there is at least one call
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from enum import Enum


class MessageRole(str, Enum):
    """Valid message roles in conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model.

    Attributes:
        id: Opaque identifier (provider-issued or generated at the gateway)
        name: Name of the tool to invoke
        arguments: Raw argument string, expected to be a JSON object
    """
    id: str
    name: str
    arguments: str = "{}"

    def parse_arguments(self) -> Dict[str, Any]:
        """Parse arguments into a dict.

        Malformed JSON, or JSON that is not an object, yields {}.
        """
        try:
            parsed = json.loads(self.arguments) if self.arguments else {}
        except (TypeError, ValueError):
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the OpenAI tool_call shape."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class Message:
    """A single message in a conversation.

    Attributes:
        role: Who sent the message (system, user, assistant, tool)
        content: The message payload (may be empty for tool-only assistant turns)
        name: Optional name (tool name for tool messages)
        tool_calls: Tool calls requested by an assistant message, or None
        tool_call_id: ID of the call a tool message answers
    """
    role: MessageRole
    content: Any = ""
    name: Optional[str] = None
    tool_calls: Optional[Tuple[ToolCall, ...]] = None
    tool_call_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dict (used for export and sanitizing)."""
        data: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.name:
            data["name"] = self.name
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data


@dataclass(frozen=True)
class Tool:
    """Definition of a tool the agent can use.

    Attributes:
        name: Unique identifier for the tool
        description: What the tool does (shown to the model)
        parameters: JSON schema describing the tool's parameters
    """
    name: str
    description: str
    parameters: Dict[str, Any]

    def to_openai(self) -> Dict[str, Any]:
        """Native OpenAI function-tool declaration."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


# Type aliases for clarity
ToolSchema = Tuple[Tool, ...]
