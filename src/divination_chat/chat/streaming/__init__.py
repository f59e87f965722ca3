"""Chat streaming package."""

from .accumulator import MessageAccumulator, normalize_dedup
from .assembler import ServerSentEvent, SseEventAssembler
from .decoder import FrameDecoder
from .router import EventRouter
from .types import ChatCallbacks, RouteOutcome, RouteResult

__all__ = [
    "ChatCallbacks",
    "EventRouter",
    "FrameDecoder",
    "MessageAccumulator",
    "RouteOutcome",
    "RouteResult",
    "ServerSentEvent",
    "SseEventAssembler",
    "normalize_dedup",
]
