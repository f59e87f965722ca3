"""Group decoded lines into Server-Sent Events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_EVENT = "message"
DONE_SENTINEL = "[DONE]"


@dataclass
class ServerSentEvent:
    """Represents a parsed Server-Sent Event."""

    data: str
    event: str = DEFAULT_EVENT

    @property
    def is_done(self) -> bool:
        return self.data.strip() == DONE_SENTINEL

    def asdict(self) -> dict[str, str]:
        return {"event": self.event, "data": self.data}


class SseEventAssembler:
    """Stateful assembler: the last `event:` name sticks until replaced.

    Every `data:` line is one event in this protocol; there is no buffering
    of multi-line data blocks.
    """

    def __init__(self) -> None:
        self.current_event = DEFAULT_EVENT

    def feed(self, line: str) -> Optional[ServerSentEvent]:
        if not line or line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if not sep:
            return None
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            self.current_event = value.strip() or DEFAULT_EVENT
            return None
        if field == "data":
            if not value.strip():
                return None
            return ServerSentEvent(data=value, event=self.current_event)
        return None


__all__ = ["DEFAULT_EVENT", "DONE_SENTINEL", "ServerSentEvent", "SseEventAssembler"]
