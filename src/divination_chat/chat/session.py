"""Lifecycle controller for the streaming turns of one conversation."""

from __future__ import annotations

import asyncio
import enum
import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence
from uuid import uuid4

import httpx

from ..client import ChatApiClient
from ..config import Settings, get_settings
from ..errors import (
    NETWORK_ERROR,
    RESUME_FAILED,
    RESUME_NETWORK_ERROR,
    UNKNOWN_ERROR,
    ChatApiError,
    classify_exception,
)
from ..providers import (
    AuthProvider,
    LocaleProvider,
    StaticLocaleProvider,
    resolve_language,
)
from ..schemas.chat import ChatError, ChatMessage, ChatTurnRequest, ResumeRequest
from .streaming import (
    ChatCallbacks,
    EventRouter,
    FrameDecoder,
    MessageAccumulator,
    RouteOutcome,
    RouteResult,
    SseEventAssembler,
)

logger = logging.getLogger(__name__)

StreamOpener = Callable[[], AbstractAsyncContextManager[httpx.Response]]


class TurnState(enum.Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"
    ABORTED = "aborted"


class CancellationToken:
    """Cancels the task running a single turn. Never reused across turns."""

    def __init__(self) -> None:
        self._task: Optional[asyncio.Task[Any]] = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def bind(self, task: asyncio.Task[Any]) -> None:
        self._task = task
        if self._cancelled:
            task.cancel()

    def cancel(self) -> None:
        self._cancelled = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()

    def release(self) -> None:
        self._task = None


@dataclass
class _Turn:
    message_id: str
    render_delay: float = 0.0
    error_kind: str = UNKNOWN_ERROR
    network_error_kind: str = NETWORK_ERROR
    token: CancellationToken = field(default_factory=CancellationToken)
    outcome: Optional[TurnState] = None


class ChatSession:
    """Drive chat turns against the streaming endpoint.

    A session owns one accumulator, one cached session id and at most one
    in-flight turn. Starting a turn supersedes the previous one: its token is
    cancelled and its late chunks fail the active-message check.

    Observable state is read through properties; changes are pushed through
    ``ChatCallbacks``.
    """

    def __init__(
        self,
        client: ChatApiClient,
        *,
        callbacks: Optional[ChatCallbacks] = None,
        locale: Optional[LocaleProvider] = None,
        initial_session_id: Optional[str] = None,
        get_current_mode: Optional[Callable[[], str]] = None,
        render_delay: float = 0.05,
    ):
        self._client = client
        self._callbacks = callbacks or ChatCallbacks()
        self._locale = locale
        self._get_current_mode = get_current_mode
        self._render_delay = render_delay

        self._accumulator = MessageAccumulator()
        self._turn: Optional[_Turn] = None
        self._state = TurnState.IDLE
        self._last_outcome: Optional[TurnState] = None
        self._session_id: Optional[str] = initial_session_id or None
        self._last_error: Optional[ChatError] = None
        self._last_request: Optional[ChatTurnRequest] = None
        self._is_loading = False

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        auth: Optional[AuthProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs: Any,
    ) -> "ChatSession":
        settings = settings or get_settings()
        client = ChatApiClient(settings, auth, http_client=http_client)
        kwargs.setdefault("locale", StaticLocaleProvider(settings.ui_language))
        kwargs.setdefault("render_delay", settings.render_delay)
        return cls(client, **kwargs)

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # Observable state -----------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def current_assistant_message(self) -> str:
        return self._accumulator.pending_text()

    @property
    def current_thinking_message(self) -> str:
        return self._accumulator.thinking_text if self._accumulator.is_open else ""

    @property
    def last_error(self) -> Optional[ChatError]:
        return self._last_error

    @property
    def last_request(self) -> Optional[ChatTurnRequest]:
        return self._last_request

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def last_outcome(self) -> Optional[TurnState]:
        return self._last_outcome

    # Operations -----------------------------------------------------------

    async def send(
        self,
        message: str,
        mode: str = "chat",
        attachment_ids: Optional[Sequence[str]] = None,
        *,
        is_retry: bool = False,
    ) -> None:
        """Send one user message and consume the streamed reply."""

        request = ChatTurnRequest(
            message=message,
            session_id=self._session_id,
            mode=mode,
            four_pillars_ids=list(attachment_ids) if attachment_ids else None,
            language=resolve_language(self._locale),
            is_retry=is_retry,
        )

        turn = self._open_turn(render_delay=self._render_delay)
        self._last_request = request
        if not is_retry:
            self._callbacks.message(ChatMessage(content=message, sender="user"))

        await self._run_turn(turn, lambda: self._client.open_chat_stream(request))

    async def retry_last_message(self, history: Sequence[ChatMessage]) -> None:
        """Resend the most recent user message as a retry of the failed turn."""

        if not self._session_id:
            logger.warning("Retry skipped: no session to retry")
            return
        if not history:
            logger.warning("Retry skipped: no messages provided")
            return

        last_user = next((msg for msg in reversed(history) if msg.sender == "user"), None)
        if last_user is None:
            logger.warning("Retry skipped: no user message found")
            return

        mode = self._current_mode()
        logger.info("Retrying last user message in mode %s", mode)
        await self.send(last_user.content, mode, is_retry=True)

    async def resume_conversation(self) -> None:
        """Ask the server to replay the interrupted turn of this session."""

        if not self._session_id:
            logger.warning("Resume skipped: no session id available")
            return

        request = ResumeRequest(session_id=self._session_id)
        turn = self._open_turn(
            error_kind=RESUME_FAILED,
            network_error_kind=RESUME_NETWORK_ERROR,
        )
        logger.info("Resuming session %s", self._session_id)
        await self._run_turn(turn, lambda: self._client.open_resume_stream(request))

    def disconnect(self) -> None:
        """Abort the in-flight turn, if any. Never reports an error."""

        turn, self._turn = self._turn, None
        if turn is not None:
            logger.info("Disconnecting turn %s", turn.message_id)
            turn.outcome = TurnState.ABORTED
            turn.token.cancel()
            self._last_outcome = TurnState.ABORTED
        self._accumulator.close()
        self._is_loading = False
        self._state = TurnState.IDLE

    async def aclose(self) -> None:
        self.disconnect()
        await self._client.aclose()

    # Turn machinery -------------------------------------------------------

    def _current_mode(self) -> str:
        if self._get_current_mode is not None:
            return self._get_current_mode()
        if self._last_request is not None:
            return self._last_request.mode
        return "chat"

    def _open_turn(
        self,
        *,
        render_delay: float = 0.0,
        error_kind: str = UNKNOWN_ERROR,
        network_error_kind: str = NETWORK_ERROR,
    ) -> _Turn:
        previous = self._turn
        if previous is not None:
            logger.debug("Superseding in-flight turn %s", previous.message_id)
            previous.outcome = TurnState.ABORTED
            previous.token.cancel()

        turn = _Turn(
            message_id=str(uuid4()),
            render_delay=render_delay,
            error_kind=error_kind,
            network_error_kind=network_error_kind,
        )
        self._turn = turn
        self._accumulator.reset(turn.message_id)
        self._last_error = None
        self._is_loading = True
        self._state = TurnState.SENDING
        return turn

    async def _run_turn(self, turn: _Turn, open_stream: StreamOpener) -> None:
        task = asyncio.create_task(self._consume(turn, open_stream))
        turn.token.bind(task)
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if not turn.token.cancelled or (current is not None and current.cancelling()):
                raise
            logger.debug("Turn %s cancelled", turn.message_id)
        except Exception:
            # Raised by a callback or collaborator, not by the stream
            logger.exception("Turn %s aborted by an unexpected error", turn.message_id)
            raise
        finally:
            self._close_turn(turn)

    async def _consume(self, turn: _Turn, open_stream: StreamOpener) -> None:
        if turn.render_delay > 0:
            await asyncio.sleep(turn.render_delay)

        decoder = FrameDecoder()
        assembler = SseEventAssembler()
        router = EventRouter(self._accumulator, self._callbacks, error_kind=turn.error_kind)
        result = RouteResult()

        try:
            async with open_stream() as response:
                self._set_state(turn, TurnState.STREAMING)
                async for chunk in response.aiter_bytes():
                    result = self._process_lines(turn, decoder.feed(chunk), assembler, router)
                    if result.is_terminal:
                        break
                else:
                    result = self._process_lines(turn, decoder.flush(), assembler, router)
        except (ChatApiError, httpx.HTTPError) as exc:
            logger.error("Chat stream failed: %s", exc)
            error = classify_exception(
                exc,
                default_kind=turn.network_error_kind,
                on_auth_failure=self._client.auth.handle_auth_error,
            )
            self._fail(turn, error)
            return

        self._finish(turn, result)

    def _process_lines(
        self,
        turn: _Turn,
        lines: list[str],
        assembler: SseEventAssembler,
        router: EventRouter,
    ) -> RouteResult:
        for line in lines:
            event = assembler.feed(line)
            if event is None:
                continue
            try:
                payload = router.parse(event)
            except ValueError as exc:
                logger.warning("Skipping malformed stream line %r: %s", line, exc)
                continue
            result = router.dispatch(event, payload, turn.message_id)
            if result.session_id and not self._session_id:
                logger.info("Adopted session id %s", result.session_id)
                self._session_id = result.session_id
            if result.is_terminal:
                return result
        return RouteResult()

    def _finish(self, turn: _Turn, result: RouteResult) -> None:
        if self._turn is not turn or result.outcome is RouteOutcome.STALE:
            return
        if result.outcome is RouteOutcome.ERRORED:
            self._fail(turn, result.error)
            return

        pending = self._accumulator.pending_text()
        if pending:
            logger.debug("Stream ended before a final chunk; flushing %d chars", len(pending))
            self._callbacks.message(
                ChatMessage(
                    id=turn.message_id,
                    content=pending,
                    sender="assistant",
                    thinking=self._accumulator.thinking_text or None,
                )
            )
        self._accumulator.close()
        turn.outcome = TurnState.COMPLETED
        self._state = TurnState.COMPLETED
        self._callbacks.complete(self._session_id)

    def _fail(self, turn: _Turn, error: Optional[ChatError]) -> None:
        if self._turn is not turn or error is None:
            return
        self._accumulator.close()
        turn.outcome = TurnState.ERRORED
        self._state = TurnState.ERRORED
        self._last_error = error
        self._callbacks.error(error)

    def _set_state(self, turn: _Turn, state: TurnState) -> None:
        if self._turn is turn:
            self._state = state

    def _close_turn(self, turn: _Turn) -> None:
        turn.token.release()
        if self._turn is not turn:
            return
        self._turn = None
        if turn.outcome is None:
            turn.outcome = TurnState.ABORTED
            self._accumulator.close()
        self._last_outcome = turn.outcome
        self._is_loading = False
        self._state = TurnState.IDLE


__all__ = ["CancellationToken", "ChatSession", "TurnState"]
