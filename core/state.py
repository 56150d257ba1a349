"""
core/state.py - Session State

This module defines the Session object that owns a conversation's
transcript and its running flag.

Rules:
- Only depends on core/types.py
- Messages are appended, never edited or deleted one by one
- The transcript can only be cleared as a whole, and only while idle
- Exactly one agent loop may run against a session at a time
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Union
import json
import time
import uuid

from .types import Message

DEFAULT_EXPORT_NAME = "conversation.json"


def generate_run_id() -> str:
    """Generate a unique run ID for traceability.

    Format: run_{timestamp}_{uuid_short}
    This allows grep-ing logs by run_id to trace execution.
    """
    timestamp = int(time.time())
    short_uuid = str(uuid.uuid4())[:8]
    return f"run_{timestamp}_{short_uuid}"


def generate_session_id() -> str:
    """Generate a unique session ID."""
    return f"sess_{uuid.uuid4().hex}"


@dataclass
class Session:
    """State of a single conversation.

    Attributes:
        id: Unique session identifier
        messages: Ordered transcript
        running: True while an agent loop is executing
        created_at: When the session was created
        updated_at: When the transcript last changed
    """
    id: str = field(default_factory=generate_session_id)
    messages: List[Message] = field(default_factory=list)
    running: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def add_message(self, message: Message) -> None:
        """Append a message to the transcript."""
        self.messages.append(message)
        self.updated_at = datetime.now()

    def snapshot(self) -> List[Message]:
        """Copy of the transcript (safe to hand to gateways)."""
        return list(self.messages)

    def clear(self) -> bool:
        """Reset the transcript.

        Returns:
            False (and leaves the transcript untouched) while a loop is running
        """
        if self.running:
            return False
        self.messages = []
        self.updated_at = datetime.now()
        return True

    def to_list(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self.messages]

    def export_json(self) -> str:
        """Serialize the full transcript as pretty-printed JSON."""
        return json.dumps(self.to_list(), indent=2, ensure_ascii=False)

    def export(self, path: Union[str, Path] = DEFAULT_EXPORT_NAME) -> Path:
        """Write the transcript to a file.

        Args:
            path: Destination file (default: conversation.json)

        Returns:
            Path that was written
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.export_json(), encoding="utf-8")
        return target
