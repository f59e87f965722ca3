"""Divination Chat CLI - terminal client for the streaming chat service.

A rich TUI that drives a `ChatSession` and renders the streamed reply,
thinking text and control events as they arrive.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import signal
from contextlib import suppress
from typing import Any, Awaitable, Optional

from pydantic import SecretStr
from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.style import Style
from rich.text import Text

from .chat import ChatCallbacks, ChatSession
from .client import ChatApiClient
from .config import Settings
from .logging_config import configure_logging
from .providers import StaticLocaleProvider
from .schemas.chat import CHAT_MODES, ChatError, ChatMessage

# Styles
USER_STYLE = Style(color="bright_blue", bold=True)
ASSISTANT_STYLE = Style(color="bright_green")
TOOL_STYLE = Style(color="yellow")
ERROR_STYLE = Style(color="red", bold=True)
INFO_STYLE = Style(color="cyan")
THINKING_STYLE = Style(color="bright_black", italic=True)


class ShellChat:
    """Terminal chat client playing the UI role for a `ChatSession`."""

    def __init__(self, settings: Settings, mode: Optional[str] = None):
        self.settings = settings
        self.session_file = settings.session_cache_path
        self.mode = mode or settings.default_mode
        self.console = Console()
        self.running = True
        self.history: list[ChatMessage] = []
        self._client = ChatApiClient(settings)
        self._live: Optional[Live] = None
        self._partial = ""
        self._thinking = ""
        self.session = self._new_session(self._load_session())

    def _new_session(self, session_id: Optional[str]) -> ChatSession:
        callbacks = ChatCallbacks(
            on_message=self._on_message,
            on_error=self._on_error,
            on_complete=self._on_complete,
            on_refresh_characters=self._on_refresh_characters,
            on_refresh_reports=self._on_refresh_reports,
            on_partial=self._on_partial,
            on_thinking=self._on_thinking,
        )
        return ChatSession(
            self._client,
            callbacks=callbacks,
            locale=StaticLocaleProvider(self.settings.ui_language),
            initial_session_id=session_id,
            get_current_mode=lambda: self.mode,
            render_delay=self.settings.render_delay,
        )

    def _load_session(self) -> Optional[str]:
        """Load session ID from cache file."""
        try:
            if self.session_file.exists():
                session_id = self.session_file.read_text().strip()
                if session_id:
                    self.console.print(
                        f"[dim]Resuming session: {session_id[:8]}...[/dim]"
                    )
                    return session_id
        except OSError:
            pass
        return None

    def _save_session(self, session_id: Optional[str]) -> None:
        """Save session ID to cache file."""
        if not session_id:
            return
        try:
            self.session_file.parent.mkdir(parents=True, exist_ok=True)
            self.session_file.write_text(session_id)
        except OSError:
            pass

    def _clear_session(self) -> None:
        """Start a fresh conversation."""
        self.session.disconnect()
        self.history.clear()
        try:
            if self.session_file.exists():
                self.session_file.unlink()
        except OSError:
            pass
        self.session = self._new_session(None)
        self.console.print("Session cleared. Starting fresh.", style=INFO_STYLE)

    # Rendering ------------------------------------------------------------

    def _render(self) -> RenderableType:
        parts: list[RenderableType] = []
        if self._thinking:
            parts.append(
                Panel(
                    Text(self._thinking, style=THINKING_STYLE),
                    title="thinking",
                    border_style="dim",
                )
            )
        if self._partial:
            parts.append(Markdown(self._partial))
        elif not parts:
            parts.append(Text("…", style="dim"))
        return Group(*parts)

    def _refresh(self) -> None:
        if self._live is not None:
            self._live.update(self._render())

    def _remember(self, message: ChatMessage) -> None:
        for index, existing in enumerate(self.history):
            if existing.id == message.id:
                self.history[index] = message
                return
        self.history.append(message)

    # Session callbacks ----------------------------------------------------

    def _on_message(self, message: ChatMessage) -> None:
        self._remember(message)
        if message.sender == "user":
            return

        if message.function_response is not None:
            response = message.function_response
            body = json.dumps(response.response, ensure_ascii=False, indent=2, default=repr)
            self.console.print(
                Panel(body, title=f"🔧 {response.name or 'function'}", border_style="yellow")
            )
            return

        if message.limit_reached:
            info = message.limit_info
            self._partial = ""
            self._thinking = ""
            self._refresh()
            self.console.print(f"\n[bold cyan]⏸️  {message.content}[/bold cyan]")
            if info is not None and info.limit is not None:
                self.console.print(
                    f"[cyan]Turns used: {info.current}/{info.limit}[/cyan]"
                )
            return

        self._partial = message.content
        self._thinking = message.thinking or ""
        if self._live is not None:
            self._refresh()
        else:
            self.console.print(Markdown(message.content), style=ASSISTANT_STYLE)

    def _on_partial(self, text: str) -> None:
        self._partial = text
        self._refresh()

    def _on_thinking(self, text: str) -> None:
        self._thinking = text
        self._refresh()

    def _on_error(self, error: ChatError) -> None:
        self._remember(ChatMessage.failed_from(error))
        self.console.print(f"Error: {error.message}", style=ERROR_STYLE)
        hints = []
        if error.retryable:
            hints.append("/retry")
        if error.resumable:
            hints.append("/resume")
        if hints:
            self.console.print(f"[dim]Try {' or '.join(hints)}[/dim]")

    def _on_complete(self, session_id: Optional[str]) -> None:
        self._save_session(session_id)

    def _on_refresh_characters(self, payload: dict[str, Any]) -> None:
        action = payload.get("action", "update")
        self.console.print(f"[dim]Character list changed ({action})[/dim]")

    def _on_refresh_reports(self, payload: dict[str, Any]) -> None:
        self.console.print("[dim]Reports updated[/dim]")

    # Turn driving ---------------------------------------------------------

    def _cancel(self) -> None:
        self.session.disconnect()
        self.console.print("\n[dim]Request cancelled[/dim]")

    async def _drive(self, operation: Awaitable[None]) -> None:
        loop = asyncio.get_running_loop()
        handler_installed = False
        with suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signal.SIGINT, self._cancel)
            handler_installed = True

        self._partial = ""
        self._thinking = ""
        try:
            with Live(self._render(), console=self.console, refresh_per_second=10) as live:
                self._live = live
                await operation
        finally:
            self._live = None
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)

    def _show_help(self) -> None:
        """Show available commands."""
        help_text = """
[bold]Commands:[/bold]
  /help              Show this help message
  /clear             Clear session (new conversation)
  /mode              Show current mode
  /mode <name>       Switch conversation mode
  /retry             Resend the last message after a failure
  /resume            Ask the server to continue an interrupted reply
  /session           Show the current session id
  /quit              Exit divination-chat

[bold]Shortcuts:[/bold]
  Ctrl+C             Cancel current request
  Ctrl+D             Exit divination-chat
"""
        self.console.print(
            Panel(help_text.strip(), title="Divination Chat Help", border_style="blue")
        )

    async def _handle_command(self, cmd: str) -> bool:
        """Handle slash commands. Returns True if handled."""
        parts = cmd.strip().split(maxsplit=1)
        if not parts:
            return False

        command = parts[0].lower()

        if command == "/help":
            self._show_help()
            return True
        elif command == "/clear":
            self._clear_session()
            return True
        elif command == "/quit":
            self.running = False
            return True
        elif command == "/mode":
            if len(parts) > 1:
                self._set_mode(parts[1].strip())
            else:
                self.console.print(f"Current mode: {self.mode}", style=INFO_STYLE)
            return True
        elif command == "/retry":
            await self._drive(self.session.retry_last_message(list(self.history)))
            return True
        elif command == "/resume":
            await self._drive(self.session.resume_conversation())
            return True
        elif command == "/session":
            self.console.print(
                f"Session: {self.session.session_id or '(none yet)'}", style=INFO_STYLE
            )
            return True

        return False

    def _set_mode(self, mode: str) -> None:
        if mode not in CHAT_MODES:
            self.console.print(
                f"Unknown mode '{mode}'. Choose one of: {', '.join(CHAT_MODES)}",
                style=ERROR_STYLE,
            )
            return
        self.mode = mode
        self.console.print(f"Mode set to: {mode}", style=INFO_STYLE)

    async def run(self) -> None:
        """Main chat loop."""
        self.console.print()
        self.console.print(
            "[bold]Divination Chat[/bold] - Type /help for commands, Ctrl+D to exit",
            style=INFO_STYLE,
        )
        self.console.print()

        try:
            while self.running:
                try:
                    user_input = Prompt.ask("[bold blue]You[/bold blue]")
                    if not user_input.strip():
                        continue

                    if user_input.startswith("/"):
                        handled = await self._handle_command(user_input)
                        if handled:
                            continue

                    self.console.print()
                    await self._drive(self.session.send(user_input, self.mode))
                    self.console.print()

                except EOFError:
                    # Ctrl+D
                    self.console.print("\n[dim]Goodbye![/dim]")
                    break
                except KeyboardInterrupt:
                    # Ctrl+C at the prompt just discards the input
                    self.console.print()
                    continue
        finally:
            await self.session.aclose()


def build_settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.server:
        overrides["api_base_url"] = args.server
    if args.token:
        overrides["access_token"] = SecretStr(args.token)
    if args.language:
        overrides["ui_language"] = args.language
    return Settings(**overrides)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Divination Chat - terminal client for the streaming chat service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  divination-chat                              Connect to the configured server
  divination-chat --server http://localhost:8000
  divination-chat --language zh --mode create_character_real_guess

Environment Variables:
  DIVINATION_API_BASE_URL    Default server URL
  DIVINATION_ACCESS_TOKEN    Bearer token
  LOG_LEVEL                  Logging level (default WARNING)
""",
    )
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get("DIVINATION_API_BASE_URL"),
        help="Backend server URL",
    )
    parser.add_argument("--token", "-t", default=None, help="Bearer token")
    parser.add_argument(
        "--language",
        "-l",
        default=None,
        help="UI language tag (en or zh)",
    )
    parser.add_argument(
        "--mode",
        "-m",
        default=None,
        choices=CHAT_MODES,
        help="Conversation mode (default: chat)",
    )

    args = parser.parse_args()
    configure_logging(default_level="WARNING")

    chat = ShellChat(build_settings(args), mode=args.mode)
    try:
        asyncio.run(chat.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
