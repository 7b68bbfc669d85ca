from __future__ import annotations

import logging
import time
from typing import Any

from ..db.batch_insert import LoadError, batch_insert
from ..db.connection import DatabaseSession
from ..jsonl.reader import DecodeError, iter_batches
from ..models.config_models import ImportOptions
from ..models.decoded_row import DecodedRow
from ..models.processing_result import BatchStatsAccumulator, TableResult
from ..models.table_target import TableTarget
from .schema_planner import effective_columns
from .type_inference import observed_columns

"""Batch loader: stream one JSONL file into one table.

Rows are read in batches of options.batch_size; each batch becomes one
multi-row INSERT over the batch's columns (union of keys, first-appearance
order, skip columns removed). A row missing one of those keys inserts an
explicit NULL. The first failing batch or undecodable line fails the whole
table; nothing is retried. Transaction control belongs to the caller.
"""

__all__ = [
    "batch_rows",
    "load_table",
]


def batch_rows(batch: list[DecodedRow], skip_columns: frozenset[str]) -> tuple[list[str], list[list[Any]]]:
    """Project a batch onto its effective columns."""
    columns = effective_columns(observed_columns(batch), skip_columns)
    values = [[row.get(col) for col in columns] for row in batch]
    return columns, values


def load_table(
    session: DatabaseSession,
    target: TableTarget,
    options: ImportOptions,
    logger: logging.Logger | None = None,
) -> TableResult:
    logger = logger or logging.getLogger(__name__)
    skip = options.columns_skipped_for(target.table)
    stats = BatchStatsAccumulator()
    rows_attempted = 0
    rows_loaded = 0
    start = time.perf_counter()

    def _result(
        success: bool, error: str | None = None, error_type: str | None = None, error_line: int = -1
    ) -> TableResult:
        total_batches, avg_batch, p95_batch = stats.get_stats()
        return TableResult(
            table=target.table,
            rows_attempted=rows_attempted,
            rows_loaded=rows_loaded,
            success=success,
            error=error,
            error_type=error_type,
            error_line=error_line,
            elapsed_seconds=time.perf_counter() - start,
            total_batches=total_batches,
            avg_batch_seconds=avg_batch,
            p95_batch_seconds=p95_batch,
        )

    try:
        for batch in iter_batches(target.path, options.batch_size):
            columns, values = batch_rows(batch, skip)
            rows_attempted += len(batch)
            if not columns:
                raise LoadError(
                    f"line {batch[0].line_number}: no insertable columns "
                    f"(skipped={sorted(skip)})"
                )
            result = batch_insert(
                session.cursor,
                target.qualified_name,
                columns,
                values,
                page_size=options.batch_size,
                metrics_callback=lambda m: stats.add_batch_time(m.elapsed_seconds),
            )
            rows_loaded += result.inserted_rows
            logger.debug(
                "table=%s batch lines=%d-%d rows=%d total=%d",
                target.table,
                batch[0].line_number,
                batch[-1].line_number,
                result.inserted_rows,
                rows_loaded,
            )
    except DecodeError as e:
        logger.error("table=%s decode failed: %s", target.table, e)
        return _result(False, str(e), "DECODE_ERROR", e.line_number)
    except LoadError as e:
        logger.error("table=%s insert failed: %s", target.table, e)
        return _result(False, str(e), "LOAD_ERROR")

    return _result(True)
