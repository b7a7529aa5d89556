"""Data models shared across the CLI, the config loader, and the scanner."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

CutMode = Literal["exact", "legacy"]


@dataclass(slots=True)
class GlobalSettings:
    """Global knobs that apply across profiles."""

    encoding: str = "utf-8"
    progress_log: Optional[str] = None


@dataclass(slots=True)
class ScanProfile:
    """Named bundle of scan options loaded from the config document."""

    description: str
    chunk_size: Optional[int] = None  # None: use the filesystem block size
    buffer_limit: int = 0  # 0 disables the cap
    terminator: Optional[str] = "\n"
    include_terminator: bool = False
    flags: str = "r"
    emit_trailing: bool = False
    cut_mode: CutMode = "exact"


@dataclass(slots=True)
class RuntimeConfig:
    """Resolved configuration for a single run."""

    global_settings: GlobalSettings
    profile: ScanProfile
    profile_name: str = "default"


@dataclass(slots=True, frozen=True)
class SourceStat:
    """Size facts reported by a source handle before the scan starts."""

    size: int
    block_size: int = 0


@dataclass(slots=True)
class ScanProgress:
    """Progress payload reported after every read."""

    source: str
    offset: int
    total_bytes: int
    records_emitted: int
    buffered_bytes: int
    current_phase: str = "scan"

    @property
    def fraction(self) -> float:
        if not self.total_bytes:
            return 1.0
        return self.offset / self.total_bytes
