"""
Incremental line splitter for chunked response bodies.
"""

from __future__ import annotations

# Compact once this many consumed bytes sit at the front of the buffer.
_COMPACT_THRESHOLD = 64 * 1024


class LineBuffer:
    """
    Accumulates body chunks and hands out complete lines.

    Bytes are appended to a single bytearray; consumed lines only move a start
    index, and newline scanning resumes where the previous scan stopped, so a
    long line arriving in many small chunks is not rescanned from the start.
    """

    __slots__ = ("_buf", "_start", "_scan")

    def __init__(self) -> None:
        self._buf = bytearray()
        self._start = 0
        self._scan = 0

    def __len__(self) -> int:
        return len(self._buf) - self._start

    def feed(self, chunk: bytes) -> None:
        if chunk:
            self._buf += chunk

    def pop_line(self) -> bytes | None:
        """
        Return the next complete line, LF terminator included.

        Returns:
            The line bytes, or None when no full line is buffered yet.
        """
        idx = self._buf.find(b"\n", max(self._scan, self._start))
        if idx < 0:
            self._scan = len(self._buf)
            return None
        line = bytes(self._buf[self._start:idx + 1])
        self._start = idx + 1
        self._scan = self._start
        self._compact()
        return line

    def pop_remainder(self) -> bytes | None:
        """Return whatever is left (an unterminated last line), or None."""
        if not len(self):
            return None
        rest = bytes(self._buf[self._start:])
        self.clear()
        return rest

    def clear(self) -> None:
        self._buf.clear()
        self._start = 0
        self._scan = 0

    def _compact(self) -> None:
        if self._start == len(self._buf):
            self.clear()
        elif self._start >= _COMPACT_THRESHOLD:
            del self._buf[:self._start]
            self._scan -= self._start
            self._start = 0
