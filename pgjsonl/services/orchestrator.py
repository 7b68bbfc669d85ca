from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path

import psycopg2

from ..db.connection import DatabaseSession
from ..db.constraints import ConstraintError, ForeignKeyGuard
from ..jsonl.reader import JSONL_SUFFIX, scan_jsonl_files
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportOptions, ImportRequest
from ..models.error_record import ErrorRecord
from ..models.processing_result import ImportReport, TableResult
from ..models.table_target import TableTarget
from .loader import load_table
from .progress import ProgressTracker
from .schema_planner import plan_table

"""Import orchestration: JSONL files -> PostgreSQL tables.

import_all() resolves the input into TableTargets, drops skipped tables,
brackets the whole run with ForeignKeyGuard and, per table, runs
BEGIN -> plan_table() -> load_table() -> COMMIT (ROLLBACK on any failure).
Every surviving target yields exactly one TableResult; a failing table never
stops the next one. The only run-level abort is a failure to suspend foreign
keys, reported through ImportReport.fatal_error before any table is touched.
"""


class ProcessingError(Exception):
    """Raised when the input source cannot be resolved (fatal)."""


def resolve_targets(source: Path, schema: str) -> list[TableTarget]:
    """Turn a directory or single .jsonl file into TableTargets.

    Raises:
        ProcessingError: missing path, unreadable directory, or a single file
            that is not .jsonl
    """
    if not source.exists():
        raise ProcessingError(f"Input not found: {source}")

    if source.is_dir():
        try:
            paths = scan_jsonl_files(source)
        except OSError as e:
            raise ProcessingError(f"Error reading directory {source}: {e}") from e
    else:
        if source.suffix != JSONL_SUFFIX:
            raise ProcessingError(f"Input file must be {JSONL_SUFFIX}: {source}")
        paths = [source]

    return [TableTarget.from_path(p, schema) for p in paths]


def _failed(target: TableTarget, error: str, error_type: str, **fields) -> TableResult:
    return TableResult(
        table=target.table,
        rows_attempted=fields.pop("rows_attempted", 0),
        rows_loaded=0,
        success=False,
        error=error,
        error_type=error_type,
        **fields,
    )


def _record_error(error_log: ErrorLogBuffer, target: TableTarget, result: TableResult) -> None:
    error_log.append(
        ErrorRecord.create(
            file=target.path.name,
            table=target.table,
            line=result.error_line,
            error_type=result.error_type or "UNEXPECTED_ERROR",
            message=result.error or "",
        )
    )


def _safe_rollback(session: DatabaseSession, target: TableTarget, logger: logging.Logger) -> None:
    try:
        session.rollback()
    except psycopg2.Error as e:
        logger.warning("table=%s rollback failed: %s", target.table, e)


def _import_table(
    session: DatabaseSession,
    target: TableTarget,
    options: ImportOptions,
    logger: logging.Logger,
) -> TableResult:
    """Import one table inside its own transaction."""
    start = time.perf_counter()
    try:
        session.begin()
    except psycopg2.Error as e:
        return _failed(target, f"failed to begin transaction: {e}", "TRANSACTION_BEGIN_ERROR")

    try:
        plan = plan_table(session, target, options, logger)
        if not plan.ok:
            _safe_rollback(session, target, logger)
            logger.error("table=%s %s", target.table, plan.error)
            return _failed(
                target,
                plan.error or "schema planning failed",
                plan.error_type or "SCHEMA_ERROR",
                error_line=plan.error_line,
                elapsed_seconds=time.perf_counter() - start,
            )

        result = load_table(session, target, options, logger)
        result = replace(result, created=plan.created, cleared_rows=plan.cleared_rows)
        if not result.success:
            _safe_rollback(session, target, logger)
            # Rolled back: the CREATE/DELETE of the plan are undone as well
            return replace(
                result,
                rows_loaded=0,
                created=False,
                cleared_rows=0,
                elapsed_seconds=time.perf_counter() - start,
            )

        try:
            session.commit()
        except psycopg2.Error as e:
            _safe_rollback(session, target, logger)
            return _failed(
                target,
                f"commit failed: {e}",
                "TRANSACTION_COMMIT_ERROR",
                rows_attempted=result.rows_attempted,
                elapsed_seconds=time.perf_counter() - start,
            )
        return replace(result, elapsed_seconds=time.perf_counter() - start)

    except Exception as e:
        _safe_rollback(session, target, logger)
        logger.exception("table=%s unexpected failure: %s", target.table, e)
        return _failed(
            target,
            str(e).strip(),
            "UNEXPECTED_ERROR",
            elapsed_seconds=time.perf_counter() - start,
        )


def import_all(
    request: ImportRequest,
    session: DatabaseSession,
    *,
    logger: logging.Logger | None = None,
    error_log: ErrorLogBuffer | None = None,
    show_progress: bool = True,
) -> ImportReport:
    """Import every target of `request` and return the aggregate report.

    Raises:
        ProcessingError: the input source cannot be resolved
    """
    logger = logger or logging.getLogger(__name__)
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    options = request.options
    start_time = datetime.now(UTC)

    all_targets = resolve_targets(request.source, request.connection.schema)
    targets = [t for t in all_targets if t.table not in options.skip_tables]
    skipped = [t.table for t in all_targets if t.table in options.skip_tables]
    for table in skipped:
        logger.info("table=%s skipped (skip-tables)", table)

    if not targets:
        logger.warning("no JSONL files to import in %s", request.source)

    results: list[TableResult] = []
    warnings: list[str] = []
    fatal_error: str | None = None

    guard = ForeignKeyGuard(session, enabled=options.disable_foreign_keys, logger=logger)
    try:
        with guard, ProgressTracker(len(targets), enabled=show_progress) as progress:
            for target in targets:
                progress.start(target.table)
                logger.info("table=%s importing %s", target.table, target.path.name)
                result = _import_table(session, target, options, logger)
                results.append(result)
                if result.success:
                    logger.info(
                        "table=%s loaded rows=%d created=%s cleared=%d",
                        target.table,
                        result.rows_loaded,
                        result.created,
                        result.cleared_rows,
                    )
                else:
                    _record_error(error_log, target, result)
                progress.finish(
                    ok=sum(r.success for r in results),
                    failed=sum(not r.success for r in results),
                )
    except ConstraintError as e:
        fatal_error = str(e)
        logger.error("%s; no table was imported", e)

    if guard.restore_error is not None:
        warnings.append(
            f"{guard.restore_error} (foreign key enforcement may still be disabled for this session)"
        )

    recorded = len(error_log)
    log_path = error_log.flush()
    if log_path is not None:
        logger.info("error log written to %s (%d record(s))", log_path, recorded)

    end_time = datetime.now(UTC)
    return ImportReport(
        results=results,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        skipped_tables=skipped,
        warnings=warnings,
        fatal_error=fatal_error,
    )
