"""
tool/pyexe.py - Sandboxed Code Execution Tool

This module exposes the isolated execution unit (core/sandb.py) as a tool.

Responsibilities:
- Run model-written Python in a fresh confined interpreter
- Return {logs, result} or {logs, error}
- Relay every run to the renderer (on_sandbox_output)

Rules:
- Each call gets its own process; nothing persists between calls
- The child is confined by core/sandb.py: a bubblewrap namespace when
  available, plus an audit-hook guard that keeps file access inside the
  scratch directory and the standard library
- Sandbox failures are tool results, never exceptions
- Deadline comes from settings.sandbox_timeout (None = no deadline)
"""

import logging
from typing import Any, Dict, Optional

from core.errors import SandboxError
from core.render import Renderer
from core.sandb import SandboxOutcome, SandboxRunner
from core.settings import SettingsSource
from .bases import BaseTool, create_json_schema

logger = logging.getLogger(__name__)


class SandboxExecTool(BaseTool):
    """Run Python code in a confined interpreter and return logs & result.

    The code is the body of an async function receiving `console`, so it may
    `await`, `return` a value and call console.log(...) or print(...):

        console.log("squares", [i * i for i in range(3)])
        return sum(range(10))
    """

    def __init__(
        self,
        settings: SettingsSource,
        renderer: Optional[Renderer] = None,
        runner: Optional[SandboxRunner] = None,
    ):
        self.settings = settings
        self.renderer = renderer or Renderer()
        self.runner = runner or SandboxRunner()

    @property
    def name(self) -> str:
        return "sandboxed_code_exec"

    @property
    def description(self) -> str:
        return (
            "Execute Python code in a confined interpreter; return logs & result. "
            "Rely on the standard library only; files live in a scratch directory. "
            "The code runs as the body of an async function: use `return` for the result, "
            "console.log(...) or print(...) for logs, and `await` freely."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return create_json_schema(
            properties={
                "code": {"type": "string", "description": "Python code to run"},
            },
            required=["code"],
        )

    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        code = arguments["code"]
        timeout = self.settings().sandbox_timeout

        try:
            outcome = await self.runner.run(code, timeout=timeout)
        except SandboxError as e:
            logger.error(f"Sandbox unavailable: {e}")
            outcome = SandboxOutcome(error=str(e))

        logger.info(f"Sandbox finished: ok={outcome.ok} logs={len(outcome.logs)}")
        self.renderer.on_sandbox_output(outcome.logs, outcome.result, outcome.error)
        return outcome.to_dict()
