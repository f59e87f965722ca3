"""Tests for incremental frame decoding."""

from divination_chat.chat.streaming import FrameDecoder

BODY = (
    'event: message\r\n'
    'data: {"content": {"text": "命理 ok"}, "partial": true}\n'
    '\n'
    'data: [DONE]\n'
).encode("utf-8")


def decode_all(chunks: list[bytes]) -> list[str]:
    decoder = FrameDecoder()
    lines: list[str] = []
    for chunk in chunks:
        lines.extend(decoder.feed(chunk))
    lines.extend(decoder.flush())
    return lines


def test_single_chunk_yields_lines_without_terminators() -> None:
    assert decode_all([BODY]) == [
        "event: message",
        'data: {"content": {"text": "命理 ok"}, "partial": true}',
        "",
        "data: [DONE]",
    ]


def test_every_split_point_produces_the_same_lines() -> None:
    expected = decode_all([BODY])
    for offset in range(len(BODY) + 1):
        assert decode_all([BODY[:offset], BODY[offset:]]) == expected, offset


def test_byte_at_a_time_delivery() -> None:
    chunks = [BODY[i : i + 1] for i in range(len(BODY))]
    assert decode_all(chunks) == decode_all([BODY])


def test_split_multibyte_character_is_held_back() -> None:
    decoder = FrameDecoder()
    raw = "data: 八字\n".encode("utf-8")
    # Cut inside the first CJK character
    assert decoder.feed(raw[:7]) == []
    assert decoder.feed(raw[7:]) == ["data: 八字"]


def test_flush_returns_unterminated_tail() -> None:
    decoder = FrameDecoder()
    assert decoder.feed(b"data: tail") == []
    assert decoder.flush() == ["data: tail"]
    assert decoder.flush() == []


def test_empty_chunk_is_a_no_op() -> None:
    decoder = FrameDecoder()
    assert decoder.feed(b"") == []
    assert decoder.flush() == []
