"""Dispatch assembled stream events to accumulation or UI callbacks."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Union

from ...schemas.chat import (
    ChatMessage,
    LimitInfo,
    LimitReachedPayload,
    StreamContent,
    StreamPayload,
)
from ...errors import UNKNOWN_ERROR, classify_in_band
from .accumulator import MessageAccumulator, normalize_dedup
from .assembler import ServerSentEvent
from .types import ChatCallbacks, RouteOutcome, RouteResult

logger = logging.getLogger(__name__)

LIMIT_REACHED_EVENT = "limit_reached"
THINKING_EVENT = "thinking"
REFRESH_CHARACTERS_EVENT = "refresh_characters"
REFRESH_REPORTS_EVENT = "refresh_reports"
FUNCTION_EVENT_PREFIX = "function_"

DEFAULT_LIMIT_NOTICE = "You have reached the conversation turn limit."

ParsedPayload = Union[StreamPayload, LimitReachedPayload, None]
RefreshCallback = Optional[Callable[[dict[str, Any]], None]]


def _content_dict(content: StreamContent) -> dict[str, Any]:
    # Only the fields the server sent, explicit nulls included
    return content.model_dump(exclude_unset=True)


class EventRouter:
    """Route one event per call; the caller owns the read loop.

    ``parse`` raises ``ValueError`` (pydantic's ``ValidationError``
    included) for a malformed payload so the caller can skip just that line.
    ``dispatch`` never parses, so errors raised by callbacks are not mistaken
    for malformed input.
    """

    def __init__(
        self,
        accumulator: MessageAccumulator,
        callbacks: ChatCallbacks,
        *,
        error_kind: str = UNKNOWN_ERROR,
    ) -> None:
        self._accumulator = accumulator
        self._callbacks = callbacks
        self._error_kind = error_kind

    @staticmethod
    def parse(event: ServerSentEvent) -> ParsedPayload:
        """Validate the JSON payload of ``event``; ``None`` for ``[DONE]``."""

        if event.is_done:
            return None
        if event.event == LIMIT_REACHED_EVENT:
            return LimitReachedPayload.model_validate_json(event.data)
        return StreamPayload.model_validate_json(event.data)

    def route(self, event: ServerSentEvent, message_id: str) -> RouteResult:
        return self.dispatch(event, self.parse(event), message_id)

    def dispatch(
        self, event: ServerSentEvent, payload: ParsedPayload, message_id: str
    ) -> RouteResult:
        """Act on an already parsed event. Callback errors propagate."""

        if payload is None:
            return RouteResult(RouteOutcome.COMPLETED)

        if isinstance(payload, LimitReachedPayload):
            return self._handle_limit(payload)

        content = payload.content

        if content.error:
            error = classify_in_band(content, default_kind=self._error_kind)
            logger.error("Error payload received in stream: %s", error.message)
            return RouteResult(RouteOutcome.ERRORED, error=error)

        session_id = payload.session_id or None

        if self._accumulator.active_message_id != message_id:
            logger.debug("Dropping stale chunk for message %s", message_id)
            return RouteResult(RouteOutcome.STALE, session_id=session_id)

        if event.event == THINKING_EVENT and content.thinking:
            self._callbacks.thinking(self._accumulator.add_thinking(content.thinking))
            return RouteResult(session_id=session_id)

        if event.event == REFRESH_CHARACTERS_EVENT:
            self._notify_refresh(self._callbacks.on_refresh_characters, event, content)
            return RouteResult(session_id=session_id)

        if event.event == REFRESH_REPORTS_EVENT:
            self._notify_refresh(self._callbacks.on_refresh_reports, event, content)
            return RouteResult(session_id=session_id)

        if event.event.startswith(FUNCTION_EVENT_PREFIX) and content.function_response:
            self._callbacks.message(
                ChatMessage(
                    id=f"{message_id}_{event.event}",
                    content="",
                    sender="assistant",
                    function_response=content.function_response,
                )
            )
            return RouteResult(session_id=session_id)

        text = normalize_dedup(content.text or "")
        # A missing or null `partial` marks the final chunk
        if payload.partial:
            self._callbacks.partial(self._accumulator.merge_partial(text))
            return RouteResult(session_id=session_id)

        final_text = self._accumulator.merge_final(text)
        self._callbacks.message(
            ChatMessage(
                id=message_id,
                content=final_text,
                sender="assistant",
                thinking=self._accumulator.thinking_text or None,
            )
        )
        self._accumulator.close()
        return RouteResult(RouteOutcome.COMPLETED, session_id=session_id)

    def _notify_refresh(
        self, callback: RefreshCallback, event: ServerSentEvent, content: StreamContent
    ) -> None:
        if callback is None:
            return
        try:
            callback(_content_dict(content))
        except Exception:
            logger.exception("%s handler failed; continuing the stream", event.event)

    def _handle_limit(self, limit: LimitReachedPayload) -> RouteResult:
        self._accumulator.close()
        self._callbacks.partial("")
        self._callbacks.thinking("")
        logger.info(
            "Conversation limit reached (%s/%s)", limit.current, limit.limit
        )
        self._callbacks.message(
            ChatMessage(
                content=limit.message or DEFAULT_LIMIT_NOTICE,
                sender="assistant",
                limit_reached=True,
                limit_info=LimitInfo(current=limit.current, limit=limit.limit),
            )
        )
        return RouteResult(RouteOutcome.COMPLETED)


__all__ = [
    "EventRouter",
    "FUNCTION_EVENT_PREFIX",
    "LIMIT_REACHED_EVENT",
    "ParsedPayload",
    "REFRESH_CHARACTERS_EVENT",
    "REFRESH_REPORTS_EVENT",
    "THINKING_EVENT",
]
