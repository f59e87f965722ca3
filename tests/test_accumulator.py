import pytest

from divination_chat.chat.streaming import MessageAccumulator, normalize_dedup


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("", ""),
        ("abab", "ab"),
        ("你好你好", "你好"),
        ("abc", "abc"),
        ("abcd", "abcd"),
        ("aa", "a"),
    ],
)
def test_normalize_dedup(text: str, expected: str) -> None:
    assert normalize_dedup(text) == expected


def test_normalize_dedup_is_idempotent_on_doubled_chunks() -> None:
    once = normalize_dedup("abab")
    assert once == "ab"
    assert normalize_dedup(once) == "ab"


def test_normalize_dedup_halves_only_once() -> None:
    assert normalize_dedup("abababab") == "abab"


def test_cumulative_snapshots_replace_buffer() -> None:
    acc = MessageAccumulator()
    acc.reset("m1")
    assert acc.merge_partial("Hello") == "Hello"
    assert acc.merge_partial("Hello, world") == "Hello, world"


def test_deltas_are_appended() -> None:
    acc = MessageAccumulator()
    acc.reset("m1")
    acc.merge_partial("Hel")
    assert acc.merge_partial("lo") == "Hello"


def test_repeated_snapshot_is_idempotent() -> None:
    acc = MessageAccumulator()
    acc.reset("m1")
    acc.merge_partial("Hello")
    assert acc.merge_partial("Hello") == "Hello"


def test_empty_partial_keeps_buffer() -> None:
    acc = MessageAccumulator()
    acc.reset("m1")
    acc.merge_partial("Hi")
    assert acc.merge_partial("") == "Hi"


def test_final_text_overrides_buffer() -> None:
    acc = MessageAccumulator()
    acc.reset("m1")
    acc.merge_partial("Hello")
    assert acc.merge_final("Goodbye") == "Goodbye"


def test_empty_final_keeps_buffer() -> None:
    acc = MessageAccumulator()
    acc.reset("m1")
    acc.merge_partial("Hello")
    assert acc.merge_final("") == "Hello"


def test_thinking_accumulates() -> None:
    acc = MessageAccumulator()
    acc.reset("m1")
    acc.add_thinking("Looking at the ")
    assert acc.add_thinking("pillars") == "Looking at the pillars"


def test_reset_and_close() -> None:
    acc = MessageAccumulator()
    assert not acc.is_open
    assert acc.pending_text() == ""

    acc.reset("m1")
    acc.merge_partial("text")
    acc.add_thinking("hmm")
    assert acc.is_open
    assert acc.pending_text() == "text"

    acc.reset("m2")
    assert acc.assistant_text == ""
    assert acc.thinking_text == ""
    assert acc.active_message_id == "m2"

    acc.merge_partial("more")
    acc.close()
    assert acc.active_message_id is None
    assert acc.pending_text() == ""
