"""
core/render.py - Renderer Callbacks

The core never touches presentation state. It reports what happened
through a Renderer, and front ends (CLI, web UI, tests) subclass it.
Every hook defaults to a no-op.
"""

from typing import Any, List, Optional


class Renderer:
    """Callback surface the agent loop, router and tools report to."""

    def on_message(self, role: str, content: str) -> None:
        """A user or assistant message should be shown."""

    def on_alert(self, severity: str, text: str) -> None:
        """A notification (severity: info, warning, danger)."""

    def on_busy_change(self, busy: bool) -> None:
        """The agent loop started (True) or finished (False)."""

    def on_sandbox_output(
        self,
        logs: List[str],
        result: Any = None,
        error: Optional[str] = None,
    ) -> None:
        """Sandboxed code finished; logs plus either a result or an error."""

    def on_redirect(self, url: str) -> None:
        """The user must complete an external login flow at url."""


class RecordingRenderer(Renderer):
    """Renderer that records every callback (useful for tests and tooling)."""

    def __init__(self):
        self.messages = []
        self.alerts = []
        self.busy_changes = []
        self.sandbox_outputs = []
        self.redirects = []

    def on_message(self, role: str, content: str) -> None:
        self.messages.append((role, content))

    def on_alert(self, severity: str, text: str) -> None:
        self.alerts.append((severity, text))

    def on_busy_change(self, busy: bool) -> None:
        self.busy_changes.append(busy)

    def on_sandbox_output(self, logs, result=None, error=None) -> None:
        self.sandbox_outputs.append((list(logs), result, error))

    def on_redirect(self, url: str) -> None:
        self.redirects.append(url)
