"""
boot/setup.py - Configuration and Environment Setup

This module handles:
- Loading environment variables (.env via python-dotenv)
- Building the flat config dict and the AgentSettings struct
- Configuring logging

Rules:
- No business logic
- Only configuration loading
- Fail fast if a config value is malformed
"""

import os
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from dotenv import load_dotenv

from core.errors import ConfigurationError
from core.sandb import Isolation
from core.settings import AgentSettings, ProviderKind


def get_project_root() -> Path:
    """Get the project root directory."""
    # Assume boot/ is at project root
    return Path(__file__).parent.parent


def load_env_file(env_path: Optional[Path] = None) -> bool:
    """Load environment variables from a .env file.

    Existing environment variables win over the file.

    Args:
        env_path: Path to .env file. If None, uses the project root.

    Returns:
        True if a file was loaded
    """
    if env_path is None:
        env_path = get_project_root() / ".env"

    if not env_path.exists():
        return False
    return load_dotenv(env_path, override=False)


def _optional_seconds(value: str) -> Optional[float]:
    """Parse a timeout; empty, 0 or 'none' disables it."""
    if value.strip().lower() in ("", "0", "none", "off"):
        return None
    return float(value)


def load_config() -> Dict[str, Any]:
    """Load configuration from environment and .env.

    Returns:
        Configuration dictionary
    """
    load_env_file()

    try:
        config = {
            # Provider selection: openai (default), aipipe, gemini, anthropic
            "provider": os.getenv("AGENT_PROVIDER", "openai").strip().lower(),
            "api_key": os.getenv("AGENT_API_KEY", ""),
            "model": os.getenv("AGENT_MODEL", ""),
            "max_tokens": int(os.getenv("AGENT_MAX_TOKENS", "800")),
            "temperature": float(os.getenv("AGENT_TEMPERATURE", "0.7")),
            "max_turns": int(os.getenv("AGENT_MAX_TURNS", "8")),

            # Tool config
            "google_key": os.getenv("GOOGLE_CSE_KEY", ""),
            "google_cx": os.getenv("GOOGLE_CSE_CX", ""),
            "proxy_token": os.getenv("AGENT_PROXY_TOKEN", ""),
            "profile_module": os.getenv("AGENT_PROFILE_MODULE", "aipipe"),

            # Timeouts (seconds)
            "http_timeout": _optional_seconds(os.getenv("AGENT_HTTP_TIMEOUT", "60")),
            "sandbox_timeout": _optional_seconds(os.getenv("AGENT_SANDBOX_TIMEOUT", "30")),

            # Sandbox confinement: auto | namespace | guard
            "sandbox_isolation": os.getenv("AGENT_SANDBOX_ISOLATION", "auto").strip().lower(),

            # Paths
            "project_root": str(get_project_root()),
        }
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric setting: {e}") from e

    if config["sandbox_isolation"] not in {mode.value for mode in Isolation}:
        choices = ", ".join(mode.value for mode in Isolation)
        raise ConfigurationError(
            f"Unsupported sandbox isolation: {config['sandbox_isolation']} (choose from {choices})"
        )

    return config


def settings_from_config(config: Dict[str, Any]) -> AgentSettings:
    """Build the AgentSettings struct from a config dict.

    Raises:
        ConfigurationError: If the provider is unknown
    """
    try:
        provider = ProviderKind(config.get("provider", "openai"))
    except ValueError:
        choices = ", ".join(p.value for p in ProviderKind)
        raise ConfigurationError(
            f"Unsupported provider: {config.get('provider')} (choose from {choices})"
        )

    return AgentSettings(
        provider=provider,
        api_key=config.get("api_key", ""),
        model=config.get("model", ""),
        max_tokens=config.get("max_tokens", 800),
        temperature=config.get("temperature", 0.7),
        google_key=config.get("google_key", ""),
        google_cx=config.get("google_cx", ""),
        proxy_token=config.get("proxy_token", ""),
        http_timeout=config.get("http_timeout", 60.0),
        sandbox_timeout=config.get("sandbox_timeout", 30.0),
    )


CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty third-party loggers, capped at WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "urllib3")


def _session_log_path(session_id: Optional[str]) -> Path:
    """logs/session_<timestamp>[_<id prefix>].log, creating logs/ if needed."""
    logs_dir = Path(os.getenv("AGENT_LOG_DIR") or get_project_root() / "logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    stem = f"session_{datetime.now():%Y%m%d_%H%M%S}"
    if session_id:
        stem += f"_{session_id[:8]}"
    return logs_dir / f"{stem}.log"


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging(level: str = None, session_id: str = None, log_to_file: bool = True) -> Optional[str]:
    """Configure the root logger.

    The console shows `level` and above (AGENT_LOG_LEVEL, default INFO);
    the per-session file under logs/ always gets everything at DEBUG.

    Returns:
        Path to the session log file (None when not logging to a file)
    """
    level = (level or os.getenv("AGENT_LOG_LEVEL") or "INFO").upper()
    console_level = getattr(logging, level, logging.INFO)

    root = logging.getLogger()
    # Handlers filter; the root lets everything through
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    root.addHandler(_handler(logging.StreamHandler(), console_level, CONSOLE_FORMAT))

    log_path = None
    if log_to_file:
        log_path = _session_log_path(session_id)
        root.addHandler(_handler(
            logging.FileHandler(log_path, encoding="utf-8"), logging.DEBUG, FILE_FORMAT,
        ))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_path is None:
        return None
    logging.getLogger(__name__).info(f"Session log started: {log_path}")
    return str(log_path)
