"""
core/sanitize.py - Outbound Message Sanitizer

Transcripts accumulate heterogeneous content (objects from earlier
gateways, missing fields). Before every OpenAI-style call the transcript
is normalized into plain dicts that strict validators accept:

- an assistant message never carries an empty tool_calls array
- content is None beside tool calls when the text is blank
- every other content value is a string

The input is never mutated, and sanitizing sanitized output is a no-op.
"""

import json
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .types import Message, ToolCall

MessageLike = Union[Message, Mapping[str, Any]]


def _as_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return json.dumps(value)


def _as_mapping(message: MessageLike) -> Mapping[str, Any]:
    if isinstance(message, Message):
        return message.to_dict()
    return message


def _normalize_tool_call(call: Any) -> Optional[Dict[str, Any]]:
    """Return the wire shape of a tool call, or None if it is malformed."""
    if not call:
        return None
    if isinstance(call, ToolCall):
        call = call.to_dict()
    if not isinstance(call, Mapping):
        return None

    function = call.get("function") or {}
    name = function.get("name") if isinstance(function, Mapping) else None
    if not name:
        return None

    arguments = function.get("arguments")
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments or {})

    return {
        "id": call.get("id"),
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }


def sanitize_message(message: MessageLike) -> Dict[str, Any]:
    """Sanitize a single message."""
    m = _as_mapping(message)
    role = m.get("role")
    if isinstance(role, Enum):
        role = role.value
    out: Dict[str, Any] = {"role": role}

    if role == "assistant":
        raw_calls = m.get("tool_calls")
        calls = []
        if isinstance(raw_calls, (list, tuple)):
            calls = [c for c in (_normalize_tool_call(tc) for tc in raw_calls) if c]

        if calls:
            out["tool_calls"] = calls
            text = m.get("content")
            text = "" if text is None else str(text).strip()
            out["content"] = text or None
        else:
            out["content"] = _as_string(m.get("content"))

    elif role == "tool":
        out["tool_call_id"] = m.get("tool_call_id")
        if m.get("name"):
            out["name"] = m["name"]
        out["content"] = _as_string(m.get("content"))

    else:
        out["content"] = _as_string(m.get("content"))
        if m.get("name"):
            out["name"] = m["name"]

    return out


def sanitize_messages(messages: Iterable[MessageLike]) -> List[Dict[str, Any]]:
    """Produce a provider-ready copy of the transcript."""
    return [sanitize_message(m) for m in messages]

