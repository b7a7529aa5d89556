"""Source resolution and the file-handle collaborator used by the scanner."""
from __future__ import annotations

import io
import os
import stat as stat_module
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Union

from common.errors import BackendError, ErrorCode, InvalidSourceError
from common.models import SourceStat

PathInput = Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"]

_OPEN_FLAGS = {
    "r": os.O_RDONLY,
    "r+": os.O_RDWR,
    "rs+": os.O_RDWR | getattr(os, "O_SYNC", 0),
    "a+": os.O_RDWR | os.O_APPEND | os.O_CREAT,
}


class SourceHandle(ABC):
    """Random-access byte reader with a known size."""

    @abstractmethod
    def stat(self) -> SourceStat:
        ...

    @abstractmethod
    def read(self, size: int, offset: int) -> bytes:
        """Return up to ``size`` bytes starting at ``offset``; short reads are allowed."""

    @abstractmethod
    def close(self) -> None:
        ...


class DescriptorHandle(SourceHandle):
    """SourceHandle over an OS file descriptor using positional reads."""

    def __init__(self, fd: int, *, name: str = "", owner: Any = None) -> None:
        self.fd = fd
        self.name = name or f"fd:{fd}"
        # File object the descriptor was borrowed from; closing it closes the fd too.
        self._owner = owner
        self._closed = False

    def stat(self) -> SourceStat:
        info = os.fstat(self.fd)
        return SourceStat(size=info.st_size, block_size=getattr(info, "st_blksize", 0) or 0)

    def read(self, size: int, offset: int) -> bytes:
        if hasattr(os, "pread"):
            return os.pread(self.fd, size, offset)
        os.lseek(self.fd, offset, os.SEEK_SET)  # pragma: no cover - platforms without pread
        return os.read(self.fd, size)  # pragma: no cover

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owner is not None:
            self._owner.close()
        else:
            os.close(self.fd)

    def __repr__(self) -> str:  # pragma: no cover - debugging sugar
        return f"DescriptorHandle({self.name!r})"


@dataclass(slots=True, frozen=True)
class PathSource:
    path: PathInput

    def open(self, flags: str) -> SourceHandle:
        mode = open_flags(flags)
        fd = os.open(self.path, mode | getattr(os, "O_BINARY", 0))
        try:
            if stat_module.S_ISDIR(os.fstat(fd).st_mode):
                raise IsADirectoryError(f"Is a directory: {os.fsdecode(self.path)!r}")
        except OSError:
            os.close(fd)
            raise
        return DescriptorHandle(fd, name=os.fsdecode(self.path))

    @property
    def label(self) -> str:
        return os.fsdecode(self.path)


@dataclass(slots=True, frozen=True)
class DescriptorSource:
    fd: int
    owner: Any = None

    def open(self, flags: str) -> SourceHandle:
        name = getattr(self.owner, "name", None)
        return DescriptorHandle(
            self.fd,
            name=name if isinstance(name, str) else "",
            owner=self.owner,
        )

    @property
    def label(self) -> str:
        name = getattr(self.owner, "name", None)
        return name if isinstance(name, str) else f"fd:{self.fd}"


@dataclass(slots=True, frozen=True)
class HandleSource:
    handle: SourceHandle

    def open(self, flags: str) -> SourceHandle:
        return self.handle

    @property
    def label(self) -> str:
        return getattr(self.handle, "name", type(self.handle).__name__)


ResolvedSource = Union[PathSource, DescriptorSource, HandleSource]


def resolve_source(source: Any) -> ResolvedSource:
    """Classify the scan input once; no I/O happens here."""

    if isinstance(source, (str, bytes, os.PathLike)):
        return PathSource(source)
    if isinstance(source, SourceHandle):
        return HandleSource(source)
    if isinstance(source, bool):
        raise InvalidSourceError(source)
    if isinstance(source, int):
        if source < 0:
            raise InvalidSourceError(source, "negative file descriptor")
        return DescriptorSource(source)
    if isinstance(source, io.IOBase):
        if source.closed:
            raise InvalidSourceError(source, "file object is closed")
        if isinstance(source, io.TextIOBase):
            raise InvalidSourceError(source, "file object must be opened in binary mode")
        try:
            fd = source.fileno()
        except (OSError, ValueError) as exc:
            # io.UnsupportedOperation subclasses both
            raise InvalidSourceError(source, "file object has no descriptor") from exc
        return DescriptorSource(fd, owner=source)
    raise InvalidSourceError(source)


def open_flags(flags: str) -> int:
    try:
        return _OPEN_FLAGS[flags]
    except KeyError as exc:
        allowed = ", ".join(sorted(_OPEN_FLAGS))
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Unsupported open flags '{flags}'. Allowed: {allowed}",
            context={"flags": flags},
        ) from exc
