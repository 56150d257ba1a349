"""
core/errors.py - Error Taxonomy

- ProviderError: provider returned a bad status or could not be reached.
  Reported to the user; the current turn ends.
- ConfigurationError: missing or malformed credential/settings, detected
  before any network call. Reported; the call is skipped.
- ToolError: a tool failed. Folded into the tool's JSON result.
- SandboxError: the isolated execution unit itself failed (not the
  submitted code). Folded into the tool's JSON result.
"""

from typing import Optional


class AgentError(Exception):
    """Base class for agent errors."""
    pass


class ProviderError(AgentError):
    """Exception raised when a model provider call fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class ConfigurationError(AgentError):
    """Exception raised when settings or credentials are unusable."""
    pass


class ToolError(AgentError):
    """Exception raised inside a tool; converted to an error result."""
    pass


class SandboxError(ToolError):
    """Exception raised when the sandbox process cannot be run or read."""
    pass
