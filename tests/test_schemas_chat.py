import pytest
from pydantic import ValidationError

from divination_chat.schemas.chat import (
    ChatError,
    ChatMessage,
    ChatTurnRequest,
    ResumeRequest,
    StreamPayload,
)


def test_payload_keeps_null_session_id() -> None:
    payload = ChatTurnRequest(message="hello").to_payload()

    assert payload == {
        "message": "hello",
        "session_id": None,
        "mode": "chat",
        "stream": True,
        "title": "",
        "language": "en_US",
    }


def test_payload_includes_attachments_and_retry_flag() -> None:
    payload = ChatTurnRequest(
        message="compare",
        session_id="s-1",
        mode="create_character_real_guess",
        four_pillars_ids=["a", "b"],
        language="zh_CN",
        is_retry=True,
    ).to_payload()

    assert payload["session_id"] == "s-1"
    assert payload["four_pillars_ids"] == ["a", "b"]
    assert payload["is_retry"] is True
    assert payload["language"] == "zh_CN"


def test_empty_attachment_list_is_omitted() -> None:
    request = ChatTurnRequest(message="hi", four_pillars_ids=["", ""])
    assert request.four_pillars_ids is None
    assert "four_pillars_ids" not in request.to_payload()


def test_more_than_two_attachments_rejected() -> None:
    with pytest.raises(ValidationError):
        ChatTurnRequest(message="hi", four_pillars_ids=["a", "b", "c"])


def test_unknown_mode_rejected() -> None:
    with pytest.raises(ValidationError):
        ChatTurnRequest(message="hi", mode="freestyle")


def test_resume_payload() -> None:
    assert ResumeRequest(session_id="s-9").to_payload() == {"session_id": "s-9"}


def test_stream_payload_tolerates_missing_content_and_extras() -> None:
    payload = StreamPayload.model_validate_json('{"session_id": "s", "extra": 1}')
    assert payload.content.text is None
    assert payload.partial is None


def test_failed_message_from_error() -> None:
    message = ChatMessage.failed_from(ChatError(message="", kind="network_error"))
    assert message.is_failed
    assert message.sender == "assistant"
    assert message.content


def test_messages_get_unique_ids() -> None:
    first = ChatMessage(content="a", sender="user")
    second = ChatMessage(content="a", sender="user")
    assert first.id != second.id
    assert first.timestamp.tzinfo is not None
