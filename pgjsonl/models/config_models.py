from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

"""Config dataclasses for the PostgreSQL <-> JSONL tool.

These are the validated, immutable values handed to the services. Parsing and
precedence resolution (CLI > environment > YAML > defaults) live in
pgjsonl/config/loader.py; nothing here mutates after construction.
"""

DEFAULT_SCHEMA = "public"
DEFAULT_BATCH_SIZE = 500
DEFAULT_SAMPLE_SIZE = 100


@dataclass(frozen=True)
class ConnectionParams:
    """Database connection parameters.

    `schema` is the PostgreSQL namespace holding the target tables.
    """
    host: str = "localhost"
    port: int = 5432
    database: str | None = None
    user: str | None = None
    password: str | None = field(default=None, repr=False)
    schema: str = DEFAULT_SCHEMA


@dataclass(frozen=True)
class ImportOptions:
    """Import switches and exclusion filters.

    skip_columns maps table name -> column names never inserted (and never
    emitted as a ColumnSpec when the table is created).
    """
    create_tables: bool = False
    clear_before_load: bool = False
    disable_foreign_keys: bool = False
    skip_tables: frozenset[str] = frozenset()
    skip_columns: dict[str, frozenset[str]] = field(default_factory=dict)
    batch_size: int = DEFAULT_BATCH_SIZE  # rows per INSERT statement
    sample_size: int = DEFAULT_SAMPLE_SIZE  # rows read for type inference

    def __post_init__(self) -> None:
        if self.batch_size < 2:
            raise ValueError(f"batch_size must be greater than 1, got {self.batch_size}")
        if self.sample_size < 1:
            raise ValueError(f"sample_size must be positive, got {self.sample_size}")

    def columns_skipped_for(self, table: str) -> frozenset[str]:
        return self.skip_columns.get(table, frozenset())


@dataclass(frozen=True)
class ImportRequest:
    """Everything one import run needs.

    `source` is either a directory (every *.jsonl inside is imported) or a
    single .jsonl file.
    """
    connection: ConnectionParams
    source: Path
    options: ImportOptions = field(default_factory=ImportOptions)


@dataclass(frozen=True)
class ExportRequest:
    """Export run parameters.

    output_format "jsonl" writes {table}.jsonl (one object per line); "json"
    writes {table}.json as a single bracketed array.
    """
    connection: ConnectionParams
    output_dir: Path
    tables: frozenset[str] | None = None  # None = every base table in the schema
    skip_tables: frozenset[str] = frozenset()
    output_format: str = "jsonl"
