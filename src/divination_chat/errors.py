"""Error types and the classifier that maps failures onto `ChatError`."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Optional

from .schemas.chat import ChatError, StreamContent

logger = logging.getLogger(__name__)

AUTH_ERROR = "auth_error"
NETWORK_ERROR = "network_error"
IN_BAND_ERROR = "in_band_error"
LIMIT_REACHED = "limit_reached"
CANCELLED = "cancelled"
UNKNOWN_ERROR = "unknown_error"
RESUME_FAILED = "resume_failed"
RESUME_NETWORK_ERROR = "resume_network_error"

AUTH_STATUS_CODES = frozenset({401, 403})

AuthFailureHook = Callable[[int, Any], None]


class ChatApiError(Exception):
    """Wrap transport or API failures when talking to the chat service."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code in AUTH_STATUS_CODES


def _error_text(error: Any) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        message = error.get("message") or error.get("detail")
        if isinstance(message, str) and message:
            return message
    return json.dumps(error, ensure_ascii=False, default=str)


def classify_in_band(
    content: StreamContent, *, default_kind: str = UNKNOWN_ERROR
) -> ChatError:
    """Pass a server-reported error through with the flags it supplied."""

    return ChatError(
        message=_error_text(content.error),
        kind=content.error_type or default_kind,
        retryable=bool(content.retryable),
        resumable=bool(content.resumable),
    )


def classify_exception(
    exc: BaseException,
    *,
    default_kind: str = NETWORK_ERROR,
    on_auth_failure: Optional[AuthFailureHook] = None,
) -> Optional[ChatError]:
    """Map an out-of-band failure to a `ChatError`.

    Returns ``None`` for cancellation, which is intentional and never shown.
    """

    if isinstance(exc, asyncio.CancelledError):
        return None

    if isinstance(exc, ChatApiError):
        message = f"HTTP error {exc.status_code}: {exc.detail}"
        if exc.is_auth_failure:
            logger.warning("Chat request rejected with status %s", exc.status_code)
            if on_auth_failure is not None:
                on_auth_failure(exc.status_code, exc.detail)
            return ChatError(
                message=message,
                kind=AUTH_ERROR,
                retryable=True,
                resumable=False,
                status_code=exc.status_code,
            )
        return ChatError(
            message=message,
            kind=default_kind,
            retryable=True,
            resumable=False,
            status_code=exc.status_code,
        )

    return ChatError(
        message=str(exc) or exc.__class__.__name__,
        kind=default_kind,
        retryable=True,
        resumable=False,
    )


__all__ = [
    "AUTH_ERROR",
    "CANCELLED",
    "IN_BAND_ERROR",
    "LIMIT_REACHED",
    "NETWORK_ERROR",
    "RESUME_FAILED",
    "RESUME_NETWORK_ERROR",
    "UNKNOWN_ERROR",
    "AuthFailureHook",
    "ChatApiError",
    "classify_exception",
    "classify_in_band",
]
