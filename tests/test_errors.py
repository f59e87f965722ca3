import asyncio
from typing import Any

import httpx

from divination_chat.errors import (
    AUTH_ERROR,
    NETWORK_ERROR,
    RESUME_NETWORK_ERROR,
    ChatApiError,
    classify_exception,
    classify_in_band,
)
from divination_chat.schemas.chat import StreamContent


def test_cancellation_is_not_an_error() -> None:
    assert classify_exception(asyncio.CancelledError()) is None


def test_auth_failure_invokes_hook() -> None:
    calls: list[tuple[int, Any]] = []

    error = classify_exception(
        ChatApiError(401, "token expired"),
        on_auth_failure=lambda status, detail: calls.append((status, detail)),
    )

    assert error is not None
    assert error.kind == AUTH_ERROR
    assert error.retryable is True
    assert error.resumable is False
    assert error.status_code == 401
    assert error.message == "HTTP error 401: token expired"
    assert calls == [(401, "token expired")]


def test_forbidden_is_also_auth() -> None:
    error = classify_exception(ChatApiError(403, "nope"))
    assert error is not None
    assert error.kind == AUTH_ERROR


def test_server_error_uses_network_kind() -> None:
    calls: list[Any] = []
    error = classify_exception(
        ChatApiError(500, {"message": "boom"}),
        on_auth_failure=lambda *args: calls.append(args),
    )
    assert error is not None
    assert error.kind == NETWORK_ERROR
    assert error.retryable is True
    assert error.status_code == 500
    assert "500" in error.message
    assert calls == []


def test_transport_failure_with_resume_kind() -> None:
    error = classify_exception(
        httpx.ConnectError("connection refused"), default_kind=RESUME_NETWORK_ERROR
    )
    assert error is not None
    assert error.kind == RESUME_NETWORK_ERROR
    assert error.message == "connection refused"
    assert error.status_code is None


def test_exception_without_message_uses_class_name() -> None:
    error = classify_exception(RuntimeError())
    assert error is not None
    assert error.message == "RuntimeError"


def test_classify_in_band_passes_flags_through() -> None:
    content = StreamContent(error="quota", error_type="quota_exceeded", resumable=True)
    error = classify_in_band(content)
    assert error.kind == "quota_exceeded"
    assert error.message == "quota"
    assert error.retryable is False
    assert error.resumable is True


def test_chat_api_error_flags() -> None:
    assert ChatApiError(401, "x").is_auth_failure
    assert not ChatApiError(502, "x").is_auth_failure
    assert str(ChatApiError(500, "detail")) == "detail"
