"""Incremental newline-delimited JSON framing of the subprocess output stream."""

from __future__ import annotations

import codecs
import json
import re
from dataclasses import dataclass
from typing import Any

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass(frozen=True)
class Frame:
    """One complete line of subprocess output and its decode outcome."""

    line: str
    message: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LineFramer:
    """Turns arbitrary byte chunks into complete lines and decoded messages.

    Bytes are decoded as UTF-8 incrementally, so a multi-byte character split
    across two chunks is reassembled rather than mangled. The unterminated tail
    of the stream is kept in a single pending buffer until its terminator
    arrives. The buffer is unbounded: a child that never writes a newline grows
    it without limit.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> str:
        """The buffered, not yet terminated, tail of the stream."""
        return self._pending

    def reset(self) -> None:
        self._decoder.reset()
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Append a chunk and return every newly completed non-blank line."""
        text = self._pending + self._decoder.decode(chunk)
        parts = _LINE_SPLIT.split(text)
        self._pending = parts.pop()
        return [line for line in parts if line.strip()]

    def decode(self, chunk: bytes) -> list[Frame]:
        """Like :meth:`feed`, but JSON-decode each line.

        A malformed line produces a failed frame for that line only; the
        buffer and the lines around it are unaffected.
        """
        frames: list[Frame] = []
        for line in self.feed(chunk):
            try:
                frames.append(Frame(line=line, message=json.loads(line)))
            except (ValueError, RecursionError) as exc:
                # ValueError covers JSONDecodeError; absurd nesting overflows the stack.
                frames.append(Frame(line=line, error=str(exc)))
        return frames
