#!/usr/bin/env python3
"""Command-line interface for htmlescape."""

from __future__ import annotations

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import TextIO

from .decoder import DecoderOpts
from .errors import StrictModeError
from .stream import EscapeWriter, UnescapeWriter

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


def _get_version() -> str:
    try:
        return version("htmlescape")
    except PackageNotFoundError:  # pragma: no cover
        return "dev"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="htmlescape",
        description="Escape text for HTML, or decode HTML character references.",
        epilog=(
            "Examples:\n"
            "  htmlescape notes.txt > notes.html.txt\n"
            "  curl -s https://example.com | htmlescape --unescape -\n"
            "  htmlescape --unescape --errors page.txt\n"
            "\n"
            "If you don't have the 'htmlescape' command available, use:\n"
            "  python -m htmlescape ...\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "path",
        nargs="?",
        help="File to read, or '-' to read from stdin",
    )
    parser.add_argument(
        "-d",
        "--unescape",
        action="store_true",
        help="Decode character references instead of escaping",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help=f"Characters read per chunk (default: {DEFAULT_CHUNK_SIZE})",
    )
    parser.add_argument(
        "--remap-controls",
        action="store_true",
        help="Unescape-only: map &#128;-&#159; through windows-1252 like browsers do",
    )
    parser.add_argument(
        "--errors",
        action="store_true",
        help="Unescape-only: report malformed references on stderr",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Unescape-only: stop with exit code 2 at the first malformed reference",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log decoder activity to stderr",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"htmlescape {_get_version()}",
    )

    args = parser.parse_args(argv)

    if not args.path:
        parser.print_help(sys.stderr)
        raise SystemExit(1)
    if args.chunk_size < 1:
        parser.error("--chunk-size must be positive")

    return args


def _iter_chunks(source: TextIO, chunk_size: int):
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            return
        yield chunk


def _copy(source: TextIO, writer, chunk_size: int) -> None:
    with writer:
        for chunk in _iter_chunks(source, chunk_size):
            writer.write(chunk)


def _run(args: argparse.Namespace, source: TextIO) -> int:
    if not args.unescape:
        _copy(source, EscapeWriter(sys.stdout), args.chunk_size)
        return 0

    writer = UnescapeWriter(
        sys.stdout,
        opts=DecoderOpts(remap_controls=args.remap_controls),
        collect_errors=args.errors,
        strict=args.strict,
        debug=args.debug,
    )
    try:
        _copy(source, writer, args.chunk_size)
    except StrictModeError as e:
        sys.stdout.flush()
        print(str(e.error), file=sys.stderr)
        return 2

    for error in writer.errors:
        print(str(error), file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    logger.debug("Reading %s in chunks of %d", args.path, args.chunk_size)

    if args.path == "-":
        return _run(args, sys.stdin)

    try:
        with open(args.path, encoding="utf-8") as source:
            return _run(args, source)
    except OSError as e:
        print(f"htmlescape: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
