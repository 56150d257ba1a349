"""
tests/tools/test_sandbox_tool.py - Sandboxed Code Execution Tool Tests
"""

import asyncio

from core.errors import SandboxError
from core.render import RecordingRenderer
from core.sandb import SandboxOutcome, SandboxRunner
from core.settings import AgentSettings, static_settings
from tool.pyexe import SandboxExecTool


class FakeRunner:
    """Records calls instead of spawning a process."""

    def __init__(self, outcome=None, error=None):
        self.outcome = outcome
        self.error = error
        self.calls = []

    async def run(self, code, timeout=None):
        self.calls.append((code, timeout))
        if self.error:
            raise self.error
        return self.outcome


def test_result_is_returned_and_rendered():
    renderer = RecordingRenderer()
    runner = FakeRunner(SandboxOutcome(logs=["hi"], result=42))
    tool = SandboxExecTool(static_settings(AgentSettings(sandbox_timeout=5)), renderer=renderer, runner=runner)

    result = asyncio.run(tool.call({"code": "console.log('hi')\nreturn 42"}))

    assert result == {"logs": ["hi"], "result": 42}
    assert runner.calls == [("console.log('hi')\nreturn 42", 5)]
    assert renderer.sandbox_outputs == [(["hi"], 42, None)]


def test_runner_failure_is_an_error_result():
    renderer = RecordingRenderer()
    runner = FakeRunner(error=SandboxError("Could not start sandbox interpreter"))
    tool = SandboxExecTool(static_settings(AgentSettings()), renderer=renderer, runner=runner)

    result = asyncio.run(tool.call({"code": "return 1"}))

    assert result == {"logs": [], "error": "Could not start sandbox interpreter"}
    assert renderer.sandbox_outputs == [([], None, "Could not start sandbox interpreter")]


def test_missing_code_is_invalid():
    tool = SandboxExecTool(static_settings(AgentSettings()), runner=FakeRunner())
    result = asyncio.run(tool.call({}))
    assert result["error"].startswith("Invalid arguments")


def test_real_sandbox_error():
    renderer = RecordingRenderer()
    tool = SandboxExecTool(static_settings(AgentSettings(sandbox_timeout=20)), renderer=renderer, runner=SandboxRunner())

    result = asyncio.run(tool.call({"code": "raise Exception('boom')"}))

    assert result == {"logs": [], "error": "boom"}
    assert renderer.sandbox_outputs == [([], None, "boom")]
