"""
core/settings.py - Agent Settings

The configuration struct consumed read-only by the router and the tools.
The core asks a settings source (a zero-argument callable) for a fresh
AgentSettings on every provider and tool call, so a front end can swap
provider or model between turns.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from enum import Enum


class ProviderKind(str, Enum):
    """Supported model providers."""
    OPENAI = "openai"
    PROXY = "aipipe"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"


# Known models per provider; the first entry is the default.
MODEL_OPTIONS: Dict[ProviderKind, List[str]] = {
    ProviderKind.OPENAI: ["gpt-4o-mini", "gpt-4o", "gpt-4.1-mini", "gpt-4.1"],
    ProviderKind.PROXY: [
        "openai/gpt-4o-mini",
        "openai/gpt-4o",
        "google/gemini-2.0-flash-lite-001",
    ],
    ProviderKind.ANTHROPIC: [
        "claude-3-5-sonnet-latest",
        "claude-3-opus-latest",
        "claude-3-haiku-latest",
    ],
    ProviderKind.GEMINI: ["gemini-2.5-flash", "gemini-2.0-flash", "gemini-1.5-pro"],
}


def default_model(provider: ProviderKind) -> str:
    """Default model identifier for a provider."""
    return MODEL_OPTIONS[provider][0]


@dataclass(frozen=True)
class AgentSettings:
    """Settings read by the core on every call.

    Attributes:
        provider: Which model provider to talk to
        api_key: Credential for the provider (may be empty for the proxy)
        model: Model identifier
        max_tokens: Maximum output tokens per completion
        temperature: Sampling temperature
        google_key: Google Custom Search API key (optional)
        google_cx: Google Custom Search engine id (optional)
        proxy_token: Dedicated token for the remote_model_proxy tool (optional)
        http_timeout: Seconds before an HTTP call is abandoned (None = never)
        sandbox_timeout: Seconds before sandboxed code is killed (None = never)
    """
    provider: ProviderKind = ProviderKind.OPENAI
    api_key: str = ""
    model: str = ""
    max_tokens: int = 800
    temperature: float = 0.7
    google_key: str = ""
    google_cx: str = ""
    proxy_token: str = ""
    http_timeout: Optional[float] = 60.0
    sandbox_timeout: Optional[float] = 30.0

    @property
    def resolved_model(self) -> str:
        return self.model or default_model(self.provider)

    @property
    def has_search_keys(self) -> bool:
        return bool(self.google_key.strip() and self.google_cx.strip())


SettingsSource = Callable[[], AgentSettings]


def static_settings(settings: AgentSettings) -> SettingsSource:
    """Wrap a fixed AgentSettings as a settings source."""
    return lambda: settings
