"""
core/trace.py - Tool-Call Traceability

This module provides structured, grep-able logging for tool calls and
loop iterations. Every tool execution can be traced via run_id and
tool_call_id.

Usage:
    tracer = TraceLogger(run_id="run_abc123")
    tracer.log_tool_call(tool_call)
    # ... execute tool ...
    tracer.log_tool_result(tool_call, result, elapsed_ms=123.4)

Log Format:
    [run_id=X] [tool_call_id=Y] CALL Tool={name} Args={...}
    [run_id=X] [tool_call_id=Y] RESULT success Tool={name} elapsed={ms}ms
"""

import logging
import json
from typing import Dict, Any

from core.types import ToolCall

logger = logging.getLogger("agent.trace")


class TraceLogger:
    """Centralized tool-call tracing for debuggability."""

    def __init__(self, run_id: str):
        self.run_id = run_id

    def log_tool_call(self, tool_call: ToolCall) -> None:
        """Log when a tool call is initiated."""
        args_str = self._format_args(tool_call.arguments)

        logger.info(
            f"[run_id={self.run_id}] [tool_call_id={tool_call.id}] "
            f"CALL Tool={tool_call.name} Args={args_str}"
        )

    def log_tool_result(
        self,
        tool_call: ToolCall,
        result: Dict[str, Any],
        elapsed_ms: float,
    ) -> None:
        """Log when a tool call completes.

        A result carrying an "error" key is logged as an error.
        """
        error = result.get("error") if isinstance(result, dict) else None
        status = "error" if error else "success"

        error_info = ""
        if error:
            error_snippet = str(error)[:100].replace('\n', ' ')
            error_info = f" error=\"{error_snippet}\""

        logger.info(
            f"[run_id={self.run_id}] [tool_call_id={tool_call.id}] "
            f"RESULT {status} Tool={tool_call.name} elapsed={elapsed_ms:.1f}ms{error_info}"
        )

    def log_step(self, step_num: int, max_steps: int, tool_calls: int) -> None:
        """Log agent iteration progression."""
        logger.debug(
            f"[run_id={self.run_id}] STEP {step_num}/{max_steps} tool_calls={tool_calls}"
        )

    def _format_args(self, args: Any, max_len: int = 200) -> str:
        """Format arguments for logging, truncating if needed."""
        if isinstance(args, str):
            args_json = args
        else:
            try:
                args_json = json.dumps(args)
            except (TypeError, ValueError):
                args_json = str(args)
        if len(args_json) > max_len:
            return args_json[:max_len] + "..."
        return args_json
