"""Type definitions for the chat streaming subsystem."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ...schemas.chat import ChatError, ChatMessage


@dataclass
class ChatCallbacks:
    """Hooks the UI layer registers on a chat session."""

    on_message: Optional[Callable[[ChatMessage], None]] = None
    on_error: Optional[Callable[[ChatError], None]] = None
    on_complete: Optional[Callable[[Optional[str]], None]] = None
    on_refresh_characters: Optional[Callable[[dict[str, Any]], None]] = None
    on_refresh_reports: Optional[Callable[[dict[str, Any]], None]] = None
    on_partial: Optional[Callable[[str], None]] = None
    on_thinking: Optional[Callable[[str], None]] = None

    def message(self, message: ChatMessage) -> None:
        if self.on_message is not None:
            self.on_message(message)

    def error(self, error: ChatError) -> None:
        if self.on_error is not None:
            self.on_error(error)

    def complete(self, session_id: Optional[str]) -> None:
        if self.on_complete is not None:
            self.on_complete(session_id)

    def partial(self, text: str) -> None:
        if self.on_partial is not None:
            self.on_partial(text)

    def thinking(self, text: str) -> None:
        if self.on_thinking is not None:
            self.on_thinking(text)


class RouteOutcome(enum.Enum):
    CONTINUE = "continue"
    COMPLETED = "completed"
    ERRORED = "errored"
    STALE = "stale"


@dataclass
class RouteResult:
    outcome: RouteOutcome = RouteOutcome.CONTINUE
    error: ChatError | None = None
    session_id: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not RouteOutcome.CONTINUE


__all__ = ["ChatCallbacks", "RouteOutcome", "RouteResult"]
