"""Accumulation buffer and terminator splitting with bounded rescans."""
from __future__ import annotations

from typing import Iterator, Optional

from common.models import CutMode


class ByteArena:
    """Growable byte buffer that drops consumed bytes by moving a front offset.

    Storage is compacted only once the dead prefix is at least half of the
    backing ``bytearray``, so consuming many short records out of one large
    chunk stays linear.
    """

    __slots__ = ("_data", "_start")

    def __init__(self) -> None:
        self._data = bytearray()
        self._start = 0

    def __len__(self) -> int:
        return len(self._data) - self._start

    def append(self, chunk: bytes) -> None:
        if self._start and self._start * 2 >= len(self._data):
            self._compact()
        self._data += chunk

    def find(self, needle: bytes, start: int = 0) -> int:
        """Return the index of ``needle`` relative to the logical front, or -1."""

        index = self._data.find(needle, self._start + start)
        return -1 if index < 0 else index - self._start

    def peek(self, length: int) -> bytes:
        length = max(0, min(length, len(self)))
        return bytes(self._data[self._start : self._start + length])

    def consume(self, length: int) -> None:
        self._start += min(length, len(self))
        if self._start == len(self._data):
            self._data.clear()
            self._start = 0

    def take_all(self) -> bytes:
        remainder = self.peek(len(self))
        self.consume(len(self))
        return remainder

    def _compact(self) -> None:
        del self._data[: self._start]
        self._start = 0


class RecordSplitter:
    """Cuts terminator-delimited records out of appended chunks."""

    def __init__(
        self,
        terminator: bytes,
        *,
        include_terminator: bool = False,
        cut_mode: CutMode = "exact",
    ) -> None:
        if not terminator:
            raise ValueError("terminator must be a non-empty byte sequence")
        self.terminator = bytes(terminator)
        self.include_terminator = include_terminator
        self.cut_mode = cut_mode
        self._arena = ByteArena()
        # Everything before this logical offset is known not to start a match.
        self._scan_from = 0

    @property
    def pending(self) -> int:
        return len(self._arena)

    def feed(self, chunk: bytes) -> Iterator[bytes]:
        """Append ``chunk`` and yield every record completed by it, in order."""

        self._arena.append(chunk)
        while True:
            record = self._next_record()
            if record is None:
                return
            yield record

    def flush(self) -> Optional[bytes]:
        """Return the unterminated remainder, if any, and reset the buffer."""

        self._scan_from = 0
        if not self._arena:
            return None
        return self._arena.take_all()

    def _next_record(self) -> Optional[bytes]:
        width = len(self.terminator)
        index = self._arena.find(self.terminator, self._scan_from)
        if index < 0:
            self._scan_from = max(0, len(self._arena) - width + 1)
            return None
        record = self._arena.peek(self._cut(index, width))
        self._arena.consume(index + width)
        self._scan_from = 0
        return record

    def _cut(self, index: int, width: int) -> int:
        if self.cut_mode == "legacy":
            # A negative end counts back from the end of everything buffered.
            end = index - (0 if self.include_terminator else width)
            return end if end >= 0 else max(0, len(self._arena) + end)
        return index + width if self.include_terminator else index
