"""
core/proto.py - Gateway Response Protocol

This module defines the canonical reply every gateway returns.
Whatever a provider sends back, the agent loop only ever sees an
AgentResponse.

Rules:
- Only depends on core/types.py
- content is never None (empty string instead)
- tool_calls is never None (empty list instead)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .types import Message, MessageRole, ToolCall


@dataclass
class AgentResponse:
    """Canonical assistant reply from a gateway.

    Attributes:
        content: Visible text (possibly empty)
        tool_calls: Tool calls the model wants to make (possibly empty)
        finish_reason: Why generation stopped, if the provider said
        usage: Token usage statistics, if the provider reported them
    """
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None

    def to_message(self) -> Message:
        """Build the transcript message for this reply.

        tool_calls is only set when there is at least one call.
        """
        return Message(
            role=MessageRole.ASSISTANT,
            content=self.content or "",
            tool_calls=tuple(self.tool_calls) if self.tool_calls else None,
        )
