"""HTTP transport for the streaming chat endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx

from .errors import ChatApiError
from .config import Settings
from .providers import AuthProvider, SettingsAuthProvider, resolve_token
from .schemas.chat import ChatTurnRequest, ResumeRequest

logger = logging.getLogger(__name__)


class ChatApiClient:
    """Client responsible for opening chat event streams."""

    def __init__(
        self,
        settings: Settings,
        auth: Optional[AuthProvider] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self.auth: AuthProvider = auth or SettingsAuthProvider(settings)
        self._client = http_client
        self._owns_client = http_client is None
        self._client_lock = asyncio.Lock()

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client

        async with self._client_lock:
            if self._client is None:
                timeout = httpx.Timeout(
                    self._settings.request_timeout,
                    connect=self._settings.connect_timeout,
                )
                limits = httpx.Limits(
                    max_connections=10,
                    max_keepalive_connections=5,
                )
                self._client = httpx.AsyncClient(
                    timeout=timeout,
                    limits=limits,
                    http2=self._settings.http2,
                )
        return self._client

    async def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            "Cache-Control": "no-store",
        }
        token = await resolve_token(self.auth)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def open_chat_stream(
        self, request: ChatTurnRequest
    ) -> AbstractAsyncContextManager[httpx.Response]:
        """Open the event stream for one chat turn."""

        return self._open_stream(self._settings.chat_url, request.to_payload())

    def open_resume_stream(
        self, request: ResumeRequest
    ) -> AbstractAsyncContextManager[httpx.Response]:
        """Open the event stream replaying an interrupted turn."""

        return self._open_stream(self._settings.resume_url, request.to_payload())

    @asynccontextmanager
    async def _open_stream(
        self, url: str, payload: dict[str, Any]
    ) -> AsyncIterator[httpx.Response]:
        client = await self._get_http_client()
        headers = await self._headers()
        # Requests are credential-less apart from the bearer token
        client.cookies.clear()

        logger.debug("Opening chat stream %s (session=%s)", url, payload.get("session_id"))
        try:
            async with client.stream(
                "POST",
                url,
                headers=headers,
                json=payload,
            ) as response:
                if not response.is_success:
                    body = await response.aread()
                    detail = self._extract_error_detail(body)
                    logger.error(
                        "Chat API error %s: %s", response.status_code, detail
                    )
                    raise ChatApiError(response.status_code, detail)
                yield response
        except httpx.HTTPError as exc:
            raise ChatApiError(int(httpx.codes.BAD_GATEWAY), str(exc) or repr(exc)) from exc

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            client, self._client = self._client, None
            await client.aclose()

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "Chat service returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            return payload.get("detail") or payload.get("error") or payload
        return payload


__all__ = ["ChatApiClient", "ChatApiError"]
