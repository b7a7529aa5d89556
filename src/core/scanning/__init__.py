"""Chunked file scanning: terminator-delimited records under bounded memory."""

from .buffer import ByteArena, RecordSplitter
from .scanner import ChunkedDelimiterScanner, ScanOptions, produce, scan_records
from .source import DescriptorHandle, SourceHandle, resolve_source

__all__ = [
    "ByteArena",
    "ChunkedDelimiterScanner",
    "DescriptorHandle",
    "RecordSplitter",
    "ScanOptions",
    "SourceHandle",
    "produce",
    "resolve_source",
    "scan_records",
]
