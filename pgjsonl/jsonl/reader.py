from __future__ import annotations

import json
from collections.abc import Iterator
from itertools import islice
from pathlib import Path
from typing import Any

from ..models.decoded_row import DecodedRow

"""JSONL row decoder.

One line -> one DecodedRow. Blank lines are skipped silently. Anything that
is not a single JSON object per line (malformed JSON, arrays or scalars as
the whole line, NaN/Infinity constants) raises DecodeError. Decoding is
schema-agnostic: the target table may not exist yet.

Files are read as UTF-8 (a leading BOM is tolerated) and every helper closes
its file handle on all exit paths.
"""

__all__ = [
    "DecodeError",
    "decode_line",
    "iter_rows",
    "iter_batches",
    "read_sample",
    "scan_jsonl_files",
]

JSONL_SUFFIX = ".jsonl"


class DecodeError(Exception):
    """Raised when a JSONL line cannot be decoded into an object."""

    def __init__(self, line_number: int, message: str, path: Path | None = None) -> None:
        self.line_number = line_number
        self.path = path
        where = f"{path.name}:{line_number}" if path is not None else f"line {line_number}"
        super().__init__(f"{where}: {message}")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def decode_line(line: str, line_number: int, path: Path | None = None) -> DecodedRow | None:
    """Decode one line. Returns None for blank lines."""
    text = line.strip()
    if not text:
        return None
    try:
        value = json.loads(text, parse_constant=_reject_constant)
    except ValueError as e:  # json.JSONDecodeError is a ValueError
        raise DecodeError(line_number, f"malformed JSON: {e}", path) from e
    if not isinstance(value, dict):
        raise DecodeError(
            line_number, f"expected a JSON object, got {type(value).__name__}", path
        )
    return DecodedRow(line_number=line_number, values=value)


def iter_rows(path: Path) -> Iterator[DecodedRow]:
    """Stream decoded rows from a JSONL file."""
    line_number = 0
    with path.open("r", encoding="utf-8-sig") as f:
        try:
            for line_number, line in enumerate(f, start=1):
                row = decode_line(line, line_number, path)
                if row is not None:
                    yield row
        except UnicodeDecodeError as e:
            raise DecodeError(line_number + 1, f"invalid UTF-8: {e}", path) from e


def iter_batches(path: Path, batch_size: int) -> Iterator[list[DecodedRow]]:
    """Group decoded rows into lists of at most batch_size rows."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    rows = iter_rows(path)
    try:
        while True:
            batch = list(islice(rows, batch_size))
            if not batch:
                return
            yield batch
    finally:
        rows.close()


def read_sample(path: Path, limit: int) -> list[DecodedRow]:
    """Return the first `limit` rows of a file (all rows if fewer)."""
    rows = iter_rows(path)
    try:
        return list(islice(rows, limit))
    finally:
        rows.close()


def scan_jsonl_files(directory: Path) -> list[Path]:
    """List *.jsonl files in a directory (non-recursive, sorted by name)."""
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix == JSONL_SUFFIX)
