from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

"""TableTarget and ColumnSpec models.

A TableTarget binds one input file ({table}.jsonl) to a table in the
configured schema. ColumnSpec is only used when a missing table is created.
"""

__all__ = [
    "ColumnSpec",
    "TableTarget",
    "quote_ident",
]


def quote_ident(name: str) -> str:
    """Double-quote a SQL identifier (embedded quotes doubled)."""
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class TableTarget:
    path: Path  # Input JSONL file
    table: str  # Table name derived from the file stem
    schema: str  # PostgreSQL schema (namespace)

    @classmethod
    def from_path(cls, path: Path, schema: str) -> TableTarget:
        return cls(path=path, table=path.stem, schema=schema)

    @property
    def qualified_name(self) -> str:
        return f"{quote_ident(self.schema)}.{quote_ident(self.table)}"


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    sql_type: str

    def to_sql(self) -> str:
        return f"{quote_ident(self.name)} {self.sql_type}"
