from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime

"""Processing result models for import and export runs.

TableResult is produced once per imported table and never mutated;
ImportReport aggregates them and is the only artifact an import run returns.
"""


@dataclass(frozen=True)
class TableResult:
    """Outcome of importing one JSONL file into one table."""
    table: str
    rows_attempted: int  # Rows decoded and sent (or about to be sent) to INSERT
    rows_loaded: int  # Rows committed
    success: bool
    error: str | None = None  # Triggering error message on failure
    error_type: str | None = None  # DECODE_ERROR / SCHEMA_ERROR / LOAD_ERROR / ...
    error_line: int = -1  # Offending input line, -1 when not line-specific
    created: bool = False  # Table was created by this run
    cleared_rows: int = 0  # Rows removed before loading
    elapsed_seconds: float = 0.0
    # Batch timing statistics
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0


@dataclass(frozen=True)
class ImportReport:
    """Aggregate of all TableResults for one run.

    success is true iff the run was not aborted and no table failed.
    warnings carry conditions that did not fail a table but the caller must
    know about (e.g. foreign-key enforcement could not be restored).
    """
    results: list[TableResult]
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    skipped_tables: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    fatal_error: str | None = None

    @property
    def success(self) -> bool:
        return self.fatal_error is None and not self.failed_results

    @property
    def failed_results(self) -> list[TableResult]:
        return [r for r in self.results if not r.success]

    @property
    def succeeded_results(self) -> list[TableResult]:
        return [r for r in self.results if r.success]

    @property
    def total_rows_loaded(self) -> int:
        return sum(r.rows_loaded for r in self.results)

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.total_rows_loaded / self.elapsed_seconds


@dataclass(frozen=True)
class ExportResult:
    """Outcome of exporting one table."""
    table: str
    rows_exported: int
    success: bool
    path: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ExportReport:
    results: list[ExportResult]
    elapsed_seconds: float
    error: str | None = None  # Run-level failure (connection, empty schema)

    @property
    def success(self) -> bool:
        return self.error is None and all(r.success for r in self.results)

    @property
    def failed_results(self) -> list[ExportResult]:
        return [r for r in self.results if not r.success]

    @property
    def total_rows_exported(self) -> int:
        return sum(r.rows_exported for r in self.results)


class BatchStatsAccumulator:
    """Accumulates per-batch INSERT timings for a TableResult."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 19th of 20 inclusive quantiles
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
