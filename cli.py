#!/usr/bin/env python3
"""
cli.py - Interactive Console Chat

A minimal console front end for the agent loop. Settings come from the
environment (.env supported), flags override them.

Usage:
    python cli.py [--provider openai|aipipe|gemini|anthropic] [--model NAME]
    python cli.py --mock

Commands:
    /clear          reset the conversation
    /export [path]  write the transcript as JSON (default conversation.json)
    quit, exit      stop
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Fix Windows console encoding
if sys.platform == 'win32':
    sys.stdout.reconfigure(encoding='utf-8', errors='replace')
    sys.stderr.reconfigure(encoding='utf-8', errors='replace')

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from core.errors import AgentError
from core.render import Renderer
from core.settings import ProviderKind
from boot.setup import load_config, setup_logging
from boot.wires import wire_dependencies
from flow.loops import StopReason


class ConsoleRenderer(Renderer):
    """Prints agent activity to the terminal."""

    def on_message(self, role: str, content: str) -> None:
        # The user's own input is already on screen
        if role == "assistant":
            print(f"\nAgent: {content}\n")

    def on_alert(self, severity: str, text: str) -> None:
        print(f"[{severity.upper()}] {text}")

    def on_sandbox_output(self, logs, result=None, error=None) -> None:
        print("[SANDBOX]")
        for line in logs:
            print(f"  | {line}")
        if error:
            print(f"  ! {error}")
        elif result is not None:
            print(f"  = {result!r}")

    def on_redirect(self, url: str) -> None:
        print(f"[LOGIN] Open this URL to sign in, then set AGENT_PROXY_TOKEN: {url}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tool-calling agent CLI")
    parser.add_argument(
        "--provider",
        choices=[p.value for p in ProviderKind],
        help="Model provider (overrides AGENT_PROVIDER)",
    )
    parser.add_argument("--model", help="Model name (overrides AGENT_MODEL)")
    parser.add_argument("--mock", action="store_true", help="Use mock model instead of a real provider")
    parser.add_argument("--log-level", default=None, help="Console log level (default INFO)")
    return parser


async def main(argv=None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config()
    except AgentError as e:
        print(f"[ERROR] {e}")
        return 1

    if args.provider:
        config["provider"] = args.provider
    if args.model:
        config["model"] = args.model

    gateway_factory = None
    if args.mock:
        from gate.mock import MockGateway
        mock = MockGateway()
        gateway_factory = lambda settings, api_key: mock
        # Mock runs need no credential
        config["api_key"] = config.get("api_key") or "mock"
        config["provider"] = ProviderKind.ANTHROPIC.value

    renderer = ConsoleRenderer()
    try:
        deps = wire_dependencies(config, renderer=renderer, gateway_factory=gateway_factory)
    except AgentError as e:
        print(f"[ERROR] {e}")
        return 1

    session = deps.session
    setup_logging(args.log_level, session_id=session.id)
    settings = deps.settings()

    print("[Agent CLI]")
    print("=" * 50)
    print(f"Provider: {'mock' if args.mock else settings.provider.value}")
    print(f"Model: {settings.resolved_model}")
    print(f"Tools: {', '.join(deps.tools.list())}")
    print("=" * 50)
    print("\nType 'quit' or 'exit' to stop, /clear to reset, /export [path] to save\n")

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, "You: ")).strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nGoodbye!")
                break

            if not user_input:
                continue

            if user_input.lower() in ["quit", "exit", "bye"]:
                print("\nGoodbye!")
                break

            if user_input == "/clear":
                if session.clear():
                    print("[OK] Conversation cleared\n")
                continue

            if user_input.startswith("/export"):
                target = user_input[len("/export"):].strip()
                try:
                    path = session.export(target) if target else session.export()
                except OSError as e:
                    print(f"[ERROR] Export failed: {e}\n")
                    continue
                print(f"[OK] Exported {len(session.messages)} messages to {path}\n")
                continue

            result = await deps.loop.submit(session, user_input)
            if result.stop_reason == StopReason.MAX_TURNS:
                print(f"[INFO] Stopped after {result.steps_taken} turns\n")
    finally:
        await deps.aclose()

    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
