"""CLI shell over the chunked record scanner: split and count."""
from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional

from common.config import load_runtime_config
from common.errors import BackendError, ErrorCode
from common.models import RuntimeConfig, ScanProgress
from common.progress import ProgressLogger
from core.scanning import ChunkedDelimiterScanner, ScanOptions


def decode_terminator(value: str, encoding: str = "utf-8") -> bytes:
    """Turn a command-line terminator such as ``\\r\\n`` into raw bytes."""

    try:
        return value.encode(encoding).decode("unicode_escape").encode("latin-1")
    except UnicodeError as exc:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Cannot decode terminator {value!r}: escapes must stay within \\x00-\\xff ({exc})",
            context={"terminator": value},
        ) from exc


def status(message: str) -> None:
    print(message, file=sys.stderr)


def render_progress(progress: ScanProgress) -> None:
    if progress.current_phase != "complete":
        return
    status(
        f"[scan] {progress.source} bytes={progress.offset}/{progress.total_bytes} "
        f"records={progress.records_emitted} dropped={progress.buffered_bytes}"
    )


def build_options(args: argparse.Namespace, runtime: RuntimeConfig) -> ScanOptions:
    overrides: Dict[str, Any] = {}
    if args.chunk_size is not None:
        overrides["chunk_size"] = args.chunk_size
    if args.buffer_limit is not None:
        overrides["buffer_limit"] = args.buffer_limit
    if args.raw:
        overrides["terminator"] = None
    elif args.terminator is not None:
        overrides["terminator"] = decode_terminator(args.terminator, runtime.global_settings.encoding)
    if args.include_terminator:
        overrides["include_terminator"] = True
    if args.emit_trailing:
        overrides["emit_trailing"] = True
    if args.cut_mode:
        overrides["cut_mode"] = args.cut_mode

    progress_path = args.progress_log or runtime.global_settings.progress_log
    logger = ProgressLogger(Path(progress_path)) if progress_path else None

    def on_progress(progress: ScanProgress) -> None:
        if logger is not None:
            logger.emit(progress)
        if args.verbose:
            render_progress(progress)

    overrides["progress_callback"] = on_progress
    return ScanOptions.from_profile(runtime, **overrides)


def load_runtime(args: argparse.Namespace) -> RuntimeConfig:
    config_path = Path(args.config) if args.config else None
    return load_runtime_config(profile=args.profile, config_path=config_path)


def command_split(args: argparse.Namespace) -> None:
    runtime = load_runtime(args)
    options = build_options(args, runtime)
    scanner = ChunkedDelimiterScanner(args.input, options)
    separator = b"" if scanner.raw_mode or options.include_terminator else options.terminator_bytes

    output: Optional[BinaryIO] = None
    try:
        output = Path(args.output).open("wb") if args.output else sys.stdout.buffer
        for record in scanner:
            output.write(record)
            if separator and not scanner.tail_flushed:
                output.write(separator)
    finally:
        if output is not None and args.output:
            output.close()
    if args.output:
        status(f"[split] Wrote {scanner.records_emitted} record(s) to {args.output}")


def command_count(args: argparse.Namespace) -> None:
    runtime = load_runtime(args)
    options = build_options(args, runtime)
    scanner = ChunkedDelimiterScanner(args.input, options)

    start = time.perf_counter()
    total = sum(1 for _ in scanner)
    duration = time.perf_counter() - start
    print(total)
    status(
        f"[count] {args.input}: {total} record(s) in {duration:.2f}s "
        f"(chunk_size={scanner.chunk_size}, profile '{runtime.profile_name}')"
    )


def _add_scan_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="File to scan")
    parser.add_argument(
        "--profile",
        default="default",
        help="Profile from the bundled defaults.json (e.g., default, low_memory, bulk)",
    )
    parser.add_argument("--config", help="Alternative config JSON")
    parser.add_argument("--chunk-size", type=int, help="Bytes requested per read")
    parser.add_argument(
        "--buffer-limit",
        type=int,
        help="Maximum bytes a pending record may occupy (0 disables the cap)",
    )
    parser.add_argument(
        "--terminator",
        help="Record terminator; backslash escapes such as \\r\\n are decoded",
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Disable splitting and pass chunks through unchanged",
    )
    parser.add_argument(
        "--include-terminator",
        action="store_true",
        help="Keep the terminator bytes at the end of every record",
    )
    parser.add_argument(
        "--emit-trailing",
        action="store_true",
        help="Emit bytes after the last terminator as a final record",
    )
    parser.add_argument(
        "--cut-mode",
        choices=["exact", "legacy"],
        help="Record boundary arithmetic (legacy reproduces the historical cut)",
    )
    parser.add_argument(
        "--progress-log",
        help="Path to JSONL file for structured progress events",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Print a scan summary")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="record-scan", description="Bounded-memory record splitting for large files"
    )
    subparsers = parser.add_subparsers(dest="command")

    split = subparsers.add_parser("split", help="Write records to stdout or a file")
    _add_scan_arguments(split)
    split.add_argument("--output", help="Destination file (defaults to stdout)")
    split.set_defaults(func=command_split)

    count = subparsers.add_parser("count", help="Print the number of records")
    _add_scan_arguments(count)
    count.set_defaults(func=command_count)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    try:
        args.func(args)
    except BackendError as exc:
        status(str(exc))
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
