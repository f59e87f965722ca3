"""Streaming chat engine."""

from .session import CancellationToken, ChatSession, TurnState
from .streaming import ChatCallbacks

__all__ = ["CancellationToken", "ChatCallbacks", "ChatSession", "TurnState"]
