"""Tests for source classification and the descriptor handle."""
from __future__ import annotations

import os
from pathlib import Path

import pytest

from common.errors import BackendError, ErrorCode
from core.scanning.source import (
    DescriptorHandle,
    DescriptorSource,
    HandleSource,
    PathSource,
    resolve_source,
)


def test_resolve_source_variants(tmp_path: Path) -> None:
    path = tmp_path / "data.bin"
    path.write_bytes(b"payload")

    assert isinstance(resolve_source(path), PathSource)
    assert isinstance(resolve_source(str(path)), PathSource)
    assert isinstance(resolve_source(os.fsencode(path)), PathSource)
    assert isinstance(resolve_source(0), DescriptorSource)

    handle = DescriptorHandle(os.open(path, os.O_RDONLY))
    try:
        assert isinstance(resolve_source(handle), HandleSource)
    finally:
        handle.close()

    with path.open("rb") as fh:
        resolved = resolve_source(fh)
        assert isinstance(resolved, DescriptorSource)
        assert resolved.fd == fh.fileno()
        assert resolved.label == str(path)


def test_descriptor_handle_positional_reads(tmp_path: Path) -> None:
    path = tmp_path / "data.bin"
    path.write_bytes(b"0123456789")

    handle = PathSource(path).open("r")
    try:
        info = handle.stat()
        assert info.size == 10
        assert info.block_size >= 0
        assert handle.read(3, 4) == b"456"
        assert handle.read(3, 0) == b"012"
        assert handle.read(5, 8) == b"89"
    finally:
        handle.close()
    handle.close()


def test_path_source_rejects_directory(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        PathSource(tmp_path).open("r")


def test_unknown_flags_are_config_errors(tmp_path: Path) -> None:
    path = tmp_path / "data.bin"
    path.write_bytes(b"")
    with pytest.raises(BackendError) as exc:
        PathSource(path).open("w")
    assert exc.value.code == ErrorCode.CONFIG_ERROR


def test_append_plus_flags_create_missing_file(tmp_path: Path) -> None:
    path = tmp_path / "created.bin"
    handle = PathSource(path).open("a+")
    try:
        assert handle.stat().size == 0
    finally:
        handle.close()
    assert path.exists()
