"""
flow/loops.py - Agent Loop Orchestration

This is the main agent loop that orchestrates reasoning:
1. Call the active provider with the transcript and tool schema
2. Record the assistant reply
3. Execute requested tools, in order, one at a time
4. Feed results back to the model
5. Repeat until the model stops calling tools or max turns

States: Idle -> Running -> (AwaitingProvider <-> ExecutingTools) -> Idle

Rules:
- One loop per session at a time; re-entry while running is a no-op
- Max turns prevents runaway tool cycles (hitting it is not an error)
- No reply from the router ends the turn quietly (it already alerted)
- Tool results always reach the transcript as JSON, failures included
- Never throw exceptions to caller
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.render import Renderer
from core.state import Session, generate_run_id
from core.trace import TraceLogger
from core.types import Message, MessageRole, ToolCall
from gate.router import ProviderRouter
from tool.index import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 8


class StopReason:
    """Why a loop run ended."""
    COMPLETE = "complete"
    NO_REPLY = "no_reply"
    MAX_TURNS = "max_turns"
    BUSY = "busy"
    ERROR = "error"


@dataclass
class LoopResult:
    """Result of an agent loop execution.

    Attributes:
        success: Whether loop completed without an unexpected error
        final_answer: Last visible assistant text of this run
        steps_taken: Number of provider round trips
        stop_reason: One of StopReason
        error: Optional error message
    """
    success: bool
    final_answer: str
    steps_taken: int
    stop_reason: str = StopReason.COMPLETE
    error: Optional[str] = None


class AgentLoop:
    """Main agent loop orchestrator.

    The loop is provider-agnostic: it only sees canonical messages, and the
    router decides which gateway serves each round trip.
    """

    def __init__(
        self,
        router: ProviderRouter,
        tools: ToolRegistry,
        renderer: Optional[Renderer] = None,
        max_turns: int = DEFAULT_MAX_TURNS,
    ):
        self.router = router
        self.tools = tools
        self.renderer = renderer or Renderer()
        self.max_turns = max_turns

    async def submit(self, session: Session, text: str) -> LoopResult:
        """Add user input to the transcript and run the loop.

        Blank input, or input while the session is busy, is ignored.
        """
        if session.running:
            return LoopResult(False, "", 0, stop_reason=StopReason.BUSY)

        text = (text or "").strip()
        if not text:
            return LoopResult(True, "", 0, stop_reason=StopReason.NO_REPLY)

        self.renderer.on_message(MessageRole.USER.value, text)
        session.add_message(Message(role=MessageRole.USER, content=text))
        return await self.run(session)

    async def run(self, session: Session) -> LoopResult:
        """Run the loop against the session's current transcript."""
        if session.running:
            logger.warning(f"Session {session.id} is already running, ignoring")
            return LoopResult(False, "", 0, stop_reason=StopReason.BUSY)

        run_id = generate_run_id()
        tracer = TraceLogger(run_id)
        logger.info(f"[run_id={run_id}] Starting agent loop ({len(session.messages)} messages)")

        self._set_busy(session, True)
        try:
            return await self._reasoning_loop(session, tracer)
        except Exception as e:
            logger.error(f"Agent loop error: {e}", exc_info=True)
            self.renderer.on_alert("danger", f"Agent loop error: {e}")
            return LoopResult(False, "", 0, stop_reason=StopReason.ERROR, error=str(e))
        finally:
            self._set_busy(session, False)

    def _set_busy(self, session: Session, busy: bool) -> None:
        session.running = busy
        self.renderer.on_busy_change(busy)

    async def _reasoning_loop(self, session: Session, tracer: TraceLogger) -> LoopResult:
        """Internal reasoning loop."""
        tool_defs = self.tools.get_tool_definitions()
        final_answer = ""
        turns = 0

        while turns < self.max_turns:
            turns += 1

            response = await self.router.invoke(session.snapshot(), tool_defs)
            if response is None:
                logger.info(f"[run_id={tracer.run_id}] No reply, ending turn")
                return LoopResult(True, final_answer, turns, stop_reason=StopReason.NO_REPLY)

            tracer.log_step(turns, self.max_turns, len(response.tool_calls))
            session.add_message(response.to_message())

            if response.content:
                final_answer = response.content
                self.renderer.on_message(MessageRole.ASSISTANT.value, response.content)

            if not response.tool_calls:
                return LoopResult(True, final_answer, turns, stop_reason=StopReason.COMPLETE)

            logger.info(f"Model requested {len(response.tool_calls)} tool calls")
            for tool_call in response.tool_calls:
                result = await self._execute_tool(tool_call, tracer)
                session.add_message(Message(
                    role=MessageRole.TOOL,
                    content=json.dumps(result, default=str),
                    name=tool_call.name,
                    tool_call_id=tool_call.id,
                ))

        logger.warning(f"[run_id={tracer.run_id}] Max turns ({self.max_turns}) reached")
        return LoopResult(True, final_answer, turns, stop_reason=StopReason.MAX_TURNS)

    async def _execute_tool(self, tool_call: ToolCall, tracer: TraceLogger) -> Dict[str, Any]:
        """Execute one tool call; failures come back as {"error": ...}."""
        tracer.log_tool_call(tool_call)
        start_time = time.perf_counter()

        try:
            result = await self.tools.execute_tool(tool_call.name, tool_call.parse_arguments())
        except Exception as e:
            logger.error(f"Tool execution error: {e}", exc_info=True)
            result = {"error": str(e)}

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        tracer.log_tool_result(tool_call, result, elapsed_ms)
        return result
