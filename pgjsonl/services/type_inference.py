from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import date

from ..models.decoded_row import DecodedRow, JsonKind, JsonValue, kind_of
from ..models.table_target import ColumnSpec

"""Best-effort SQL type inference from sampled JSONL rows.

Only used when a missing table is created. Resolution per column, on the
non-null sampled values, first match wins:

1. all booleans                  -> BOOLEAN
2. all integers                  -> INTEGER, BIGINT beyond 32-bit, NUMERIC beyond 64-bit
3. all numbers (int or float)    -> DOUBLE PRECISION
4. all valid ISO-8601 timestamps -> TIMESTAMP (TIMESTAMPTZ if any has Z / offset)
   all valid calendar dates      -> DATE
5. all objects / arrays          -> JSONB
   anything else                 -> TEXT

A column that is null (or absent) in every sampled row is TEXT. Values past
the sample are not inspected; a later mismatch surfaces as an insert error.
"""

__all__ = [
    "SqlType",
    "infer_column_type",
    "infer_column_specs",
    "observed_columns",
]

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1

# 2024-01-31T12:00, 2024-01-31 12:00:00.123456, 2024-01-31T12:00:00+09:00, ...Z
TIMESTAMP_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[T ](?P<hour>\d{2}):(?P<minute>\d{2})"
    r"(:(?P<second>\d{2})(\.\d{1,9})?)?"
    r"(?P<zone>Z|[+-]\d{2}(:?\d{2})?)?$"
)
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class SqlType:
    BOOLEAN = "BOOLEAN"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    NUMERIC = "NUMERIC"
    DOUBLE = "DOUBLE PRECISION"
    TIMESTAMP = "TIMESTAMP"
    TIMESTAMPTZ = "TIMESTAMPTZ"
    DATE = "DATE"
    JSONB = "JSONB"
    TEXT = "TEXT"


def _integer_type(values: Sequence[int]) -> str:
    if all(INT32_MIN <= v <= INT32_MAX for v in values):
        return SqlType.INTEGER
    if all(INT64_MIN <= v <= INT64_MAX for v in values):
        return SqlType.BIGINT
    return SqlType.NUMERIC


def _is_calendar_date(text: str) -> bool:
    """'2024-02-29' yes; '0000-00-00', '2024-13-45' no."""
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def _is_timestamp(m: re.Match[str]) -> bool:
    second = m.group("second")
    return (
        _is_calendar_date(m.group("date"))
        and int(m.group("hour")) <= 23
        and int(m.group("minute")) <= 59
        and (second is None or int(second) <= 59)
    )


def _string_type(values: Sequence[str]) -> str:
    zoned = False
    for v in values:
        m = TIMESTAMP_PATTERN.match(v)
        if m is None or not _is_timestamp(m):
            break
        zoned = zoned or m.group("zone") is not None
    else:
        return SqlType.TIMESTAMPTZ if zoned else SqlType.TIMESTAMP
    if all(DATE_PATTERN.match(v) and _is_calendar_date(v) for v in values):
        return SqlType.DATE
    return SqlType.TEXT


def infer_column_type(values: Iterable[JsonValue]) -> str:
    """Infer one SQL type from the values observed for a column."""
    observed = [v for v in values if v is not None]
    if not observed:
        return SqlType.TEXT
    kinds = {kind_of(v) for v in observed}

    if kinds == {JsonKind.BOOLEAN}:
        return SqlType.BOOLEAN
    if kinds == {JsonKind.INTEGER}:
        return _integer_type(observed)  # type: ignore[arg-type]
    if kinds <= {JsonKind.INTEGER, JsonKind.FLOAT}:
        return SqlType.DOUBLE
    if kinds == {JsonKind.STRING}:
        return _string_type(observed)  # type: ignore[arg-type]
    if kinds <= {JsonKind.OBJECT, JsonKind.ARRAY}:
        return SqlType.JSONB
    return SqlType.TEXT


def observed_columns(rows: Iterable[DecodedRow]) -> list[str]:
    """Union of keys across rows, in first-appearance order."""
    seen: dict[str, None] = {}
    for row in rows:
        for key in row.keys():
            seen.setdefault(key, None)
    return list(seen)


def infer_column_specs(
    rows: Sequence[DecodedRow], skip_columns: Iterable[str] = ()
) -> list[ColumnSpec]:
    """Build ColumnSpecs for every sampled key except the skipped ones.

    Rows missing a key contribute a null observation for it.
    """
    skipped = set(skip_columns)
    specs: list[ColumnSpec] = []
    for column in observed_columns(rows):
        if column in skipped:
            continue
        sql_type = infer_column_type(row.get(column) for row in rows)
        specs.append(ColumnSpec(name=column, sql_type=sql_type))
    return specs
