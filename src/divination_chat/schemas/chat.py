"""Pydantic models for chat requests, stream payloads and emitted messages."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

ChatMode = Literal[
    "chat",
    "create_character_real_custom",
    "create_character_real_guess",
    "create_character_virtual_custom",
    "create_character_virtual_search_or_guess",
]
CHAT_MODES: tuple[str, ...] = ChatMode.__args__  # type: ignore[attr-defined]

LanguageCode = Literal["en_US", "zh_CN"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatTurnRequest(BaseModel):
    """Outgoing payload for one chat turn."""

    message: str
    session_id: Optional[str] = None
    mode: ChatMode = "chat"
    four_pillars_ids: Optional[List[str]] = None
    stream: bool = True
    title: str = ""
    language: LanguageCode = "en_US"
    is_retry: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator("four_pillars_ids")
    @classmethod
    def _check_attachment_count(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        ids = [item for item in value if item]
        if not ids:
            return None
        if len(ids) > 2:
            raise ValueError("At most two four_pillars_ids may be attached")
        return ids

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the wire; `session_id` stays present even when null."""

        payload = self.model_dump(exclude={"four_pillars_ids", "is_retry"})
        if self.four_pillars_ids:
            payload["four_pillars_ids"] = list(self.four_pillars_ids)
        if self.is_retry:
            payload["is_retry"] = True
        return payload


class ResumeRequest(BaseModel):
    """Payload asking the server to replay an interrupted turn."""

    session_id: str

    model_config = ConfigDict(frozen=True)

    def to_payload(self) -> Dict[str, Any]:
        return {"session_id": self.session_id}


class FunctionResponse(BaseModel):
    """Structured result of a server-side function call."""

    id: Optional[str] = None
    name: Optional[str] = None
    response: Any = None

    model_config = ConfigDict(extra="allow")


class StreamContent(BaseModel):
    """The `content` object of a streamed payload."""

    text: Optional[str] = None
    role: Optional[str] = None
    thinking: Optional[str] = None
    error: Any = None
    error_type: Optional[str] = None
    retryable: Optional[bool] = None
    resumable: Optional[bool] = None
    function_response: Optional[FunctionResponse] = None

    model_config = ConfigDict(extra="allow")


class StreamPayload(BaseModel):
    """One JSON `data:` payload of the chat event stream."""

    session_id: Optional[str] = None
    content: StreamContent = Field(default_factory=StreamContent)
    partial: Optional[bool] = None
    id: Optional[str] = None
    timestamp: Optional[float | str] = None

    model_config = ConfigDict(extra="allow")


class LimitReachedPayload(BaseModel):
    """Quota notice carried by a `limit_reached` event."""

    current: Optional[int] = None
    limit: Optional[int] = None
    message: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class LimitInfo(BaseModel):
    current: Optional[int] = None
    limit: Optional[int] = None


class ChatError(BaseModel):
    """Uniform error value handed to the UI."""

    message: str
    kind: str
    retryable: bool = False
    resumable: bool = False
    status_code: Optional[int] = None


class ChatMessage(BaseModel):
    """A message handed to the UI layer."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    content: str = ""
    sender: Literal["user", "assistant"]
    timestamp: datetime = Field(default_factory=_utcnow)
    is_complete: bool = True
    is_failed: bool = False
    thinking: Optional[str] = None
    function_response: Optional[FunctionResponse] = None
    limit_reached: bool = False
    limit_info: Optional[LimitInfo] = None

    @classmethod
    def failed_from(cls, error: ChatError) -> "ChatMessage":
        """Build the failed assistant bubble shown for an error."""

        return cls(
            content=error.message or "An unknown error occurred, please retry.",
            sender="assistant",
            is_failed=True,
        )


__all__ = [
    "CHAT_MODES",
    "ChatError",
    "ChatMessage",
    "ChatMode",
    "ChatTurnRequest",
    "FunctionResponse",
    "LanguageCode",
    "LimitInfo",
    "LimitReachedPayload",
    "ResumeRequest",
    "StreamContent",
    "StreamPayload",
]
