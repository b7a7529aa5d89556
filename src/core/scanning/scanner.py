"""Chunked reads re-segmented into terminator-delimited records."""
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, replace
from typing import Any, AsyncIterator, Callable, Iterator, Optional, Union

from common.errors import BackendError, BufferOverflowError, ErrorCode
from common.models import CutMode, RuntimeConfig, ScanProgress, SourceStat

from .buffer import RecordSplitter
from .source import open_flags, resolve_source

DEFAULT_CHUNK_SIZE = 1024

Transform = Callable[[bytes], Any]
ProgressCallback = Callable[[ScanProgress], None]


@dataclass(slots=True, frozen=True)
class ScanOptions:
    """Knobs for one scan; every field is optional."""

    chunk_size: Optional[int] = None
    buffer_limit: int = 0
    terminator: Union[bytes, str, None] = b"\n"
    include_terminator: bool = False
    transform: Optional[Transform] = None
    flags: str = "r"
    emit_trailing: bool = False
    cut_mode: CutMode = "exact"
    encoding: str = "utf-8"
    progress_callback: Optional[ProgressCallback] = None

    def __post_init__(self) -> None:
        if self.chunk_size is not None and self.chunk_size < 0:
            raise BackendError(ErrorCode.CONFIG_ERROR, f"chunk_size must not be negative (got {self.chunk_size})")
        if self.buffer_limit < 0:
            raise BackendError(ErrorCode.CONFIG_ERROR, f"buffer_limit must not be negative (got {self.buffer_limit})")
        if self.cut_mode not in ("exact", "legacy"):
            raise BackendError(ErrorCode.CONFIG_ERROR, f"Unsupported cut_mode '{self.cut_mode}'")
        if not isinstance(self.terminator, (bytes, bytearray, memoryview, str, type(None))):
            raise BackendError(
                ErrorCode.CONFIG_ERROR,
                f"terminator must be bytes, str or None (got {type(self.terminator).__name__})",
            )
        open_flags(self.flags)

    @property
    def terminator_bytes(self) -> Optional[bytes]:
        if not self.terminator:
            return None
        if isinstance(self.terminator, str):
            return self.terminator.encode(self.encoding)
        return bytes(self.terminator)

    @classmethod
    def from_profile(cls, config: RuntimeConfig, **overrides: Any) -> "ScanOptions":
        profile = config.profile
        values = {
            "chunk_size": profile.chunk_size,
            "buffer_limit": profile.buffer_limit,
            "terminator": profile.terminator,
            "include_terminator": profile.include_terminator,
            "flags": profile.flags,
            "emit_trailing": profile.emit_trailing,
            "cut_mode": profile.cut_mode,
            "encoding": config.global_settings.encoding,
        }
        values.update(overrides)
        return cls(**values)


class ChunkedDelimiterScanner:
    """Single-pass reader yielding records as soon as their terminator arrives.

    The scanner is an explicit state machine (``offset``, the pending buffer
    inside :class:`RecordSplitter`, the emitted count). :meth:`iter_records`
    and :meth:`produce` drive the same steps, synchronously or from an event
    loop. Trailing bytes without a terminator are dropped unless
    ``emit_trailing`` is set.
    """

    def __init__(self, source: Any, options: Optional[ScanOptions] = None, **overrides: Any) -> None:
        if options is None:
            options = ScanOptions(**overrides)
        elif overrides:
            options = replace(options, **overrides)
        self.options = options
        self._source = resolve_source(source)
        terminator = options.terminator_bytes
        self._splitter = (
            RecordSplitter(
                terminator,
                include_terminator=options.include_terminator,
                cut_mode=options.cut_mode,
            )
            if terminator
            else None
        )
        self._started = False
        self.offset = 0
        self.total_size = 0
        self.chunk_size = 0
        self.records_emitted = 0
        # True once the unterminated remainder has been yielded.
        self.tail_flushed = False

    @property
    def raw_mode(self) -> bool:
        return self._splitter is None

    @property
    def buffered_bytes(self) -> int:
        return self._splitter.pending if self._splitter else 0

    def __iter__(self) -> Iterator[Any]:
        return self.iter_records()

    def __aiter__(self) -> AsyncIterator[Any]:
        return self.produce()

    def iter_records(self) -> Iterator[Any]:
        """Yield transformed records; the transform must be synchronous."""

        self._claim()
        handle = self._source.open(self.options.flags)
        try:
            self._begin(handle.stat())
            while self.offset < self.total_size:
                read_size = self._next_read_size()
                data = handle.read(read_size, self.offset)
                if not data:
                    break
                for record in self._accept(data):
                    yield self._apply(record)
            for record in self._finish():
                yield self._apply(record)
        finally:
            handle.close()

    async def produce(self) -> AsyncIterator[Any]:
        """Yield transformed records, awaiting reads and async transforms in order."""

        self._claim()
        handle = await asyncio.to_thread(self._source.open, self.options.flags)
        try:
            self._begin(await asyncio.to_thread(handle.stat))
            while self.offset < self.total_size:
                read_size = self._next_read_size()
                data = await asyncio.to_thread(handle.read, read_size, self.offset)
                if not data:
                    break
                for record in self._accept(data):
                    yield await self._apply_async(record)
            for record in self._finish():
                yield await self._apply_async(record)
        finally:
            await asyncio.to_thread(handle.close)

    # ------------------------------------------------------------------
    # State machine steps

    def _claim(self) -> None:
        if self._started:
            raise BackendError(
                ErrorCode.STATE_ERROR,
                "Scanner already consumed; create a new scanner for another pass",
            )
        self._started = True

    def _begin(self, stat: SourceStat) -> None:
        self.total_size = stat.size
        preferred = self.options.chunk_size or stat.block_size or DEFAULT_CHUNK_SIZE
        self.chunk_size = min(preferred, stat.size)

    def _next_read_size(self) -> int:
        read_size = min(self.total_size - self.offset, self.chunk_size)
        limit = self.options.buffer_limit
        if self._splitter is not None and limit and self._splitter.pending + read_size > limit:
            raise BufferOverflowError(requested=read_size, limit=limit, buffered=self._splitter.pending)
        return read_size

    def _accept(self, data: bytes) -> Iterator[bytes]:
        self.offset += len(data)
        if self._splitter is None:
            self.records_emitted += 1
            yield data
        else:
            for record in self._splitter.feed(data):
                self.records_emitted += 1
                yield record
        self._report("scan")

    def _finish(self) -> Iterator[bytes]:
        if self._splitter is not None and self.options.emit_trailing:
            tail = self._splitter.flush()
            if tail:
                self.records_emitted += 1
                self.tail_flushed = True
                yield tail
        self._report("complete")

    def _report(self, phase: str) -> None:
        callback = self.options.progress_callback
        if callback is None:
            return
        callback(
            ScanProgress(
                source=self._source.label,
                offset=self.offset,
                total_bytes=self.total_size,
                records_emitted=self.records_emitted,
                buffered_bytes=self.buffered_bytes,
                current_phase=phase,
            )
        )

    def _apply(self, record: bytes) -> Any:
        transform = self.options.transform
        if transform is None:
            return record
        result = transform(record)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise BackendError(
                ErrorCode.CONFIG_ERROR,
                "transform returned an awaitable; consume the scanner with produce() instead",
            )
        return result

    async def _apply_async(self, record: bytes) -> Any:
        transform = self.options.transform
        if transform is None:
            return record
        result = transform(record)
        if inspect.isawaitable(result):
            result = await result
        return result


def scan_records(source: Any, options: Optional[ScanOptions] = None, **overrides: Any) -> Iterator[Any]:
    """Synchronously iterate the records of ``source``."""

    return ChunkedDelimiterScanner(source, options, **overrides).iter_records()


def produce(source: Any, options: Optional[ScanOptions] = None, **overrides: Any) -> AsyncIterator[Any]:
    """Asynchronously iterate the records of ``source``.

    The source is classified immediately, so an unusable input raises
    :class:`~common.errors.InvalidSourceError` here rather than on the first
    ``__anext__``. Opening and reading happen lazily.
    """

    return ChunkedDelimiterScanner(source, options, **overrides).produce()

