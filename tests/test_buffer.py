"""Tests for the byte arena and terminator splitter."""
from __future__ import annotations

import pytest

from core.scanning.buffer import ByteArena, RecordSplitter


def test_arena_consume_moves_front_and_compacts() -> None:
    arena = ByteArena()
    arena.append(b"hello world")
    arena.consume(6)

    assert len(arena) == 5
    assert arena.find(b"world") == 0
    assert arena.peek(5) == b"world"

    arena.append(b"!")
    assert arena.peek(len(arena)) == b"world!"
    assert arena.find(b"!") == 5
    assert arena.find(b"hello") == -1

    assert arena.take_all() == b"world!"
    assert len(arena) == 0


def test_arena_find_honours_logical_start() -> None:
    arena = ByteArena()
    arena.append(b"a,b,c")
    arena.consume(2)
    assert arena.find(b",") == 1
    assert arena.find(b",", 2) == -1


def test_splitter_detects_terminator_across_feeds() -> None:
    splitter = RecordSplitter(b"\r\n")

    assert list(splitter.feed(b"ab\r")) == []
    assert list(splitter.feed(b"\ncd")) == [b"ab"]
    assert splitter.pending == 2
    assert list(splitter.feed(b"\r\n\r\n")) == [b"cd", b""]
    assert splitter.pending == 0


def test_splitter_long_record_over_many_feeds() -> None:
    splitter = RecordSplitter(b"<>")
    for _ in range(100):
        assert list(splitter.feed(b"xyz<")) == []
    assert list(splitter.feed(b">tail")) == [b"xyz<" * 99 + b"xyz"]
    assert splitter.flush() == b"tail"
    assert splitter.flush() is None


def test_splitter_include_terminator() -> None:
    splitter = RecordSplitter(b"|", include_terminator=True)
    assert list(splitter.feed(b"a|b|c")) == [b"a|", b"b|"]
    assert splitter.pending == 1


def test_splitter_rejects_empty_terminator() -> None:
    with pytest.raises(ValueError):
        RecordSplitter(b"")


def test_legacy_cut_negative_end_counts_from_buffer_end() -> None:
    splitter = RecordSplitter(b"\r\n", cut_mode="legacy")
    assert list(splitter.feed(b"\r\nabc\r\n")) == [b"\r\nabc", b"a"]

    included = RecordSplitter(b"\r\n", cut_mode="legacy", include_terminator=True)
    assert list(included.feed(b"\r\nabc\r\n")) == [b"", b"abc"]
