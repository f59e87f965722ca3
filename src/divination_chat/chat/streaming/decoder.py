"""Incremental byte-to-line decoding for event streams."""

from __future__ import annotations

import codecs


class FrameDecoder:
    """Turn arbitrarily split byte chunks into complete text lines.

    UTF-8 sequences cut by a chunk boundary are held back by the incremental
    decoder until the following chunk completes them, so the produced lines
    are independent of where the transport split the body.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Decode ``chunk`` and return every line it completed."""

        if not chunk:
            return []
        self._buffer += self._decoder.decode(chunk)
        return self._drain()

    def flush(self) -> list[str]:
        """Return whatever remains once the stream has ended."""

        self._buffer += self._decoder.decode(b"", final=True)
        lines = self._drain()
        tail, self._buffer = self._buffer, ""
        if tail.endswith("\r"):
            tail = tail[:-1]
        if tail:
            lines.append(tail)
        return lines

    def _drain(self) -> list[str]:
        if "\n" not in self._buffer:
            return []
        *complete, self._buffer = self._buffer.split("\n")
        return [line[:-1] if line.endswith("\r") else line for line in complete]


__all__ = ["FrameDecoder"]
