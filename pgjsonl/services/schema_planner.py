from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

import psycopg2

from ..db.connection import DatabaseSession
from ..jsonl.reader import DecodeError, read_sample
from ..models.config_models import ImportOptions
from ..models.table_target import ColumnSpec, TableTarget
from .type_inference import infer_column_specs

"""Per-table schema planning: create-if-missing, clear-if-requested.

plan_table() never raises for table-level problems; it returns a TablePlan
whose `error` / `error_type` the orchestrator inspects. An existing table is
never altered (no diffing, no migration): existing schema wins.
"""

__all__ = [
    "SchemaError",
    "TablePlan",
    "effective_columns",
    "plan_table",
    "table_exists",
]

TABLE_EXISTS_SQL = (
    "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
    "WHERE table_schema = %s AND table_name = %s)"
)


class SchemaError(Exception):
    """Raised when a table cannot be created or cleared."""


@dataclass(frozen=True)
class TablePlan:
    target: TableTarget
    created: bool = False
    cleared_rows: int = 0
    columns: list[ColumnSpec] = field(default_factory=list)  # Only set when created
    error: str | None = None
    error_type: str | None = None
    error_line: int = -1

    @property
    def ok(self) -> bool:
        return self.error is None


def effective_columns(keys: Iterable[str], skip_columns: Iterable[str]) -> list[str]:
    """Decoded keys minus the skipped columns, order preserved."""
    skipped = set(skip_columns)
    return [k for k in keys if k not in skipped]


def table_exists(session: DatabaseSession, target: TableTarget) -> bool:
    rows = session.query(TABLE_EXISTS_SQL, (target.schema, target.table))
    return bool(rows and rows[0][0])


def create_table_sql(target: TableTarget, columns: list[ColumnSpec]) -> str:
    cols = ", ".join(c.to_sql() for c in columns)
    return f"CREATE TABLE {target.qualified_name} ({cols})"


def _create_table(
    session: DatabaseSession,
    target: TableTarget,
    options: ImportOptions,
    logger: logging.Logger,
) -> list[ColumnSpec]:
    sample = read_sample(target.path, options.sample_size)
    columns = infer_column_specs(sample, options.columns_skipped_for(target.table))
    if not columns:
        raise SchemaError(
            f"cannot create {target.qualified_name}: no columns observed in "
            f"{len(sample)} sampled row(s)"
        )
    statement = create_table_sql(target, columns)
    logger.debug("table=%s create: %s", target.table, statement)
    try:
        session.execute(statement)
    except psycopg2.Error as e:
        raise SchemaError(f"create table failed: {str(e).strip()}") from e
    logger.info(
        "table=%s created columns=%s",
        target.table,
        ", ".join(f"{c.name}:{c.sql_type}" for c in columns),
    )
    return columns


def plan_table(
    session: DatabaseSession,
    target: TableTarget,
    options: ImportOptions,
    logger: logging.Logger | None = None,
) -> TablePlan:
    """Prepare one table for loading.

    Runs inside the caller's per-table transaction, so a failed load also
    undoes the CREATE TABLE and the DELETE issued here.
    """
    logger = logger or logging.getLogger(__name__)
    created = False
    columns: list[ColumnSpec] = []
    cleared_rows = 0
    try:
        if options.create_tables:
            if table_exists(session, target):
                logger.debug("table=%s exists, creation skipped", target.table)
            else:
                columns = _create_table(session, target, options, logger)
                created = True

        if options.clear_before_load:
            try:
                cleared_rows = max(session.execute(f"DELETE FROM {target.qualified_name}"), 0)
            except psycopg2.Error as e:
                raise SchemaError(f"clear failed: {str(e).strip()}") from e
            logger.info("table=%s cleared rows=%d", target.table, cleared_rows)
    except DecodeError as e:
        return TablePlan(
            target=target, error=str(e), error_type="DECODE_ERROR", error_line=e.line_number
        )
    except SchemaError as e:
        return TablePlan(target=target, error=str(e), error_type="SCHEMA_ERROR")
    except psycopg2.Error as e:
        return TablePlan(target=target, error=str(e).strip(), error_type="SCHEMA_ERROR")

    return TablePlan(
        target=target,
        created=created,
        cleared_rows=cleared_rows,
        columns=columns,
    )
