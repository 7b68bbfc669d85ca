from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extras import Json, execute_values

from ..models.table_target import quote_ident

"""Batched multi-row INSERT via psycopg2.extras.execute_values.

Callers pass the already-filtered column list (skip columns removed) and row
value sequences in that column order. JSON objects and arrays are wrapped in
psycopg2.extras.Json so they are sent as JSON text, which PostgreSQL accepts
for both json/jsonb and text columns.
"""

__all__ = [
    "BatchMetrics",
    "InsertResult",
    "LoadError",
    "adapt_value",
    "batch_insert",
]


class LoadError(Exception):
    """Raised when a batch INSERT fails (constraint, type coercion, unadaptable value, lost connection)."""


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int


def adapt_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return Json(value)
    return value


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    page_size: int = 500,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Insert rows into `table` (already schema-qualified and quoted).

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: qualified table name, e.g. '"public"."users"'
    columns: insert columns (skip columns already removed)
    rows: row value sequences in `columns` order
    page_size: rows per generated INSERT statement
    metrics_callback: receives BatchMetrics after the statement ran (or failed).
        Not invoked for an empty `rows`.
    """
    rows_list = [[adapt_value(v) for v in row] for row in rows]
    if not rows_list:
        return InsertResult(inserted_rows=0)
    if not columns:
        raise LoadError(f"no insertable columns for {table}")

    cols_sql = ",".join(quote_ident(c) for c in columns)
    base_sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"

    start_time = time.time()
    try:
        execute_values(cursor, base_sql, rows_list, page_size=page_size)
    except (psycopg2.Error, ValueError) as e:
        # ValueError: client-side adaptation, e.g. NUL characters in a string
        raise LoadError(str(e).strip()) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return InsertResult(inserted_rows=len(rows_list))
