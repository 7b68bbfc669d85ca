from __future__ import annotations

import logging
import os
import tempfile
import time
from pathlib import Path

import psycopg2

from ..db.connection import DatabaseSession
from ..models.config_models import ExportRequest
from ..models.processing_result import ExportReport, ExportResult
from ..models.table_target import quote_ident

"""Export every base table of a schema to JSON files.

PostgreSQL renders each row itself (row_to_json), so the written lines are
exactly what the importer reads back. Rows are read through a server-side
cursor, FETCH_SIZE at a time. "jsonl" writes {table}.jsonl with one
object per line; "json" writes {table}.json as one bracketed array.
"""

__all__ = [
    "EXPORT_FORMATS",
    "list_tables",
    "export_table",
    "export_all",
]

EXPORT_FORMATS = ("jsonl", "json")

LIST_TABLES_SQL = (
    "SELECT table_name FROM information_schema.tables "
    "WHERE table_schema = %s AND table_type = 'BASE TABLE' ORDER BY table_name"
)

FETCH_SIZE = 1000


def list_tables(session: DatabaseSession, schema: str) -> list[str]:
    return [row[0] for row in session.query(LIST_TABLES_SQL, (schema,))]


def _temp_path(path: Path) -> Path:
    """Empty temp file next to `path`; renamed into place once complete."""
    fd, temp = tempfile.mkstemp(prefix=f"{path.stem}_", suffix=".tmp", dir=path.parent)
    os.close(fd)
    return Path(temp)


def export_table(
    session: DatabaseSession,
    schema: str,
    table: str,
    output_dir: Path,
    output_format: str = "jsonl",
) -> ExportResult:
    """Write one table; returns a failed ExportResult instead of raising.

    Rows go to a temp file in output_dir that replaces {table}.jsonl (or
    .json) only after the last row was written, so a failed export never
    leaves a truncated file behind.
    """
    suffix = ".jsonl" if output_format == "jsonl" else ".json"
    path = output_dir / f"{table}{suffix}"
    statement = (
        f"SELECT row_to_json(t)::text FROM {quote_ident(schema)}.{quote_ident(table)} t"
    )
    rows = 0
    temp: Path | None = None
    try:
        temp = _temp_path(path)
        with temp.open("w", encoding="utf-8") as f:
            if output_format == "json":
                f.write("[")
            for (line,) in session.stream(statement, FETCH_SIZE):
                if output_format == "json":
                    f.write(",\n" if rows else "\n")
                    f.write(line)
                else:
                    f.write(line + "\n")
                rows += 1
            if output_format == "json":
                f.write("\n]\n" if rows else "]\n")
        os.replace(temp, path)
    except (psycopg2.Error, OSError) as e:
        if temp is not None:
            temp.unlink(missing_ok=True)
        return ExportResult(table=table, rows_exported=rows, success=False, path=str(path), error=str(e).strip())
    return ExportResult(table=table, rows_exported=rows, success=True, path=str(path))


def export_all(
    request: ExportRequest,
    session: DatabaseSession,
    *,
    logger: logging.Logger | None = None,
) -> ExportReport:
    logger = logger or logging.getLogger(__name__)
    if request.output_format not in EXPORT_FORMATS:
        raise ValueError(f"unknown export format: {request.output_format}")
    start = time.perf_counter()
    schema = request.connection.schema

    tables = list_tables(session, schema)
    if request.tables is not None:
        missing = sorted(request.tables - set(tables))
        if missing:
            logger.warning("tables not found in schema %s: %s", schema, ", ".join(missing))
        tables = [t for t in tables if t in request.tables]
    tables = [t for t in tables if t not in request.skip_tables]

    if not tables:
        logger.warning("no tables found in schema %s", schema)
        return ExportReport(
            results=[],
            elapsed_seconds=time.perf_counter() - start,
            error=f"No tables found in schema: {schema}",
        )

    logger.info("schema=%s tables=%d: %s", schema, len(tables), ", ".join(tables))
    if not request.output_dir.exists():
        logger.info("creating output directory %s", request.output_dir)
    request.output_dir.mkdir(parents=True, exist_ok=True)

    results: list[ExportResult] = []
    for table in tables:
        result = export_table(session, schema, table, request.output_dir, request.output_format)
        results.append(result)
        if result.success:
            logger.info("table=%s exported rows=%d file=%s", table, result.rows_exported, result.path)
        else:
            logger.error("table=%s export failed: %s", table, result.error)

    return ExportReport(results=results, elapsed_seconds=time.perf_counter() - start)
