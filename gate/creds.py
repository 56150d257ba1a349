"""
gate/creds.py - Credential Resolution and Validation

The proxy provider can run without a configured token: the user may be
logged in through an external profile module that hands out a token.
That lookup is an injected capability so tests can stub it.

Resolution outcomes:
- a token string          -> use it
- None                    -> the user must log in (LOGIN_URL)
- ConfigurationError      -> the profile module could not be loaded
"""

import importlib
import inspect
import logging
import re
from typing import Any, Awaitable, Callable, Optional, Union
from urllib.parse import quote

from core.errors import ConfigurationError
from core.settings import AgentSettings, ProviderKind

logger = logging.getLogger(__name__)

PROFILE_MODULE = "aipipe"
LOGIN_URL = "https://aipipe.org/login"

_OPENAI_KEY_PATTERN = re.compile(r"^sk-[A-Za-z0-9]")
MIN_PROXY_TOKEN_LENGTH = 20


def login_url(redirect: str = "") -> str:
    """Login URL for the proxy, optionally returning to redirect."""
    if not redirect:
        return LOGIN_URL
    return f"{LOGIN_URL}?redirect={quote(redirect, safe='')}"


class CredentialResolver:
    """Looks up a proxy token when none is configured."""

    async def resolve(self) -> Optional[str]:
        """Return a token, or None if the user has to log in.

        Raises:
            ConfigurationError: If the lookup itself is unavailable
        """
        return None


class ProfileCredentialResolver(CredentialResolver):
    """Reads the token from an external profile module.

    The module is imported by name and must expose get_profile(), returning
    a mapping (or object) with a "token" entry. get_profile may be async.
    """

    def __init__(self, module_name: str = PROFILE_MODULE):
        self.module_name = module_name

    async def resolve(self) -> Optional[str]:
        try:
            module = importlib.import_module(self.module_name)
        except ImportError as e:
            raise ConfigurationError(
                f"Could not load profile module '{self.module_name}': {e}"
            ) from e

        get_profile = getattr(module, "get_profile", None)
        if not callable(get_profile):
            raise ConfigurationError(
                f"Profile module '{self.module_name}' has no get_profile()"
            )

        profile: Any = get_profile()
        if inspect.isawaitable(profile):
            profile = await profile

        if isinstance(profile, dict):
            token = profile.get("token")
        else:
            token = getattr(profile, "token", None)
        return token or None


class CallableCredentialResolver(CredentialResolver):
    """Adapts a plain function (sync or async) into a resolver."""

    def __init__(self, func: Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]):
        self.func = func

    async def resolve(self) -> Optional[str]:
        token = self.func()
        if inspect.isawaitable(token):
            token = await token
        return token or None


def validate_credential(provider: ProviderKind, key: Optional[str]) -> None:
    """Reject credentials that cannot possibly work, before any network call.

    An empty proxy token is allowed here; the caller resolves it first.

    Raises:
        ConfigurationError: With a user-facing explanation
    """
    trimmed = (key or "").strip()
    if not trimmed:
        if provider == ProviderKind.PROXY:
            return
        raise ConfigurationError(f"Missing API key/token for {provider.value}.")

    if provider == ProviderKind.OPENAI and not _OPENAI_KEY_PATTERN.match(trimmed):
        raise ConfigurationError(
            'That does not look like an OpenAI key (should start with "sk-").'
        )

    if provider == ProviderKind.PROXY and len(trimmed) < MIN_PROXY_TOKEN_LENGTH:
        raise ConfigurationError("AI Pipe token looks too short.")


async def resolve_proxy_token(
    settings: AgentSettings,
    resolver: Optional[CredentialResolver],
) -> Optional[str]:
    """Token for direct proxy calls made by tools.

    Order: dedicated proxy token, the main credential when the proxy is the
    active provider, then the resolver. Resolver failures count as "no token".
    """
    if settings.proxy_token.strip():
        return settings.proxy_token.strip()
    if settings.provider == ProviderKind.PROXY and settings.api_key.strip():
        return settings.api_key.strip()
    if resolver is None:
        return None
    try:
        return await resolver.resolve()
    except Exception as e:
        logger.warning(f"Proxy token lookup failed: {e}")
        return None
