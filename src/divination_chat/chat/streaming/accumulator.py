"""Accumulation state for the in-flight assistant message."""

from __future__ import annotations

from typing import Optional


def normalize_dedup(text: str) -> str:
    """Collapse a chunk whose first half repeats exactly as its second half.

    Some upstream deltas arrive doubled ("abab" for "ab"); this runs before
    merging so the duplication never reaches the cumulative buffer.
    """

    if not text or len(text) % 2:
        return text
    half = len(text) // 2
    if text[:half] == text[half:]:
        return text[:half]
    return text


class MessageAccumulator:
    """Owns the cumulative answer and thinking text of one turn."""

    def __init__(self) -> None:
        self.assistant_text = ""
        self.thinking_text = ""
        self.active_message_id: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.active_message_id is not None

    def reset(self, message_id: str) -> None:
        """Start a new turn, discarding anything from the previous one."""

        self.assistant_text = ""
        self.thinking_text = ""
        self.active_message_id = message_id

    def close(self) -> None:
        """Drop all state; late chunks for the old turn no longer match."""

        self.assistant_text = ""
        self.thinking_text = ""
        self.active_message_id = None

    def merge_partial(self, text: str) -> str:
        """Merge a streaming chunk that is either a delta or a full snapshot."""

        if text:
            if text.startswith(self.assistant_text):
                self.assistant_text = text
            else:
                self.assistant_text += text
        return self.assistant_text

    def merge_final(self, text: str) -> str:
        # A non-empty final text is authoritative over what was accumulated
        if text:
            self.assistant_text = text
        return self.assistant_text

    def add_thinking(self, text: str) -> str:
        self.thinking_text += text
        return self.thinking_text

    def pending_text(self) -> str:
        """Return unfinalized answer text, or an empty string."""

        return self.assistant_text if self.is_open else ""


__all__ = ["MessageAccumulator", "normalize_dedup"]
