"""Shared error codes and exceptions for the scanner and its front-ends."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    CONFIG_ERROR = "CONFIG_ERROR"
    INVALID_SOURCE = "INVALID_SOURCE"
    BUFFER_OVERFLOW = "BUFFER_OVERFLOW"
    STATE_ERROR = "STATE_ERROR"


class BackendError(RuntimeError):
    """Exception carrying a structured error code for CLI/callers."""

    def __init__(self, code: ErrorCode, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.context = context or {}

    def __str__(self) -> str:  # pragma: no cover - formatting sugar
        base = super().__str__()
        return f"[{self.code.value}] {base}" if base else self.code.value


class InvalidSourceError(BackendError):
    """Raised when the scan input is neither a path nor a readable handle."""

    def __init__(self, source: Any, reason: str = "not a path or an open file handle") -> None:
        super().__init__(
            ErrorCode.INVALID_SOURCE,
            f"Invalid file handle: {reason} (got {type(source).__name__})",
            context={"source_type": type(source).__name__},
        )


class BufferOverflowError(BackendError):
    """Raised before a read that would grow the record buffer past its limit."""

    def __init__(self, *, requested: int, limit: int, buffered: int) -> None:
        super().__init__(
            ErrorCode.BUFFER_OVERFLOW,
            f"Cannot allocate additional buffer of size {requested}: limit of {limit} reached "
            f"({buffered} bytes pending)",
            context={"requested": requested, "limit": limit, "buffered": buffered},
        )
        self.requested = requested
        self.limit = limit
        self.buffered = buffered
