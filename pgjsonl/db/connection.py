from __future__ import annotations

import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2.extensions import make_dsn

from ..models.config_models import ConnectionParams

"""Database session provider.

The services only need a small capability: run a query, run a statement,
stream a large result set and open/close an explicit transaction.
DatabaseSession wraps one psycopg2 connection in autocommit mode and issues
BEGIN / COMMIT / ROLLBACK itself, so session-level settings
(session_replication_role) survive per-table rollbacks. No pooling, no reconnect.
"""

__all__ = [
    "DatabaseSession",
    "open_session",
    "build_dsn",
]


class DatabaseSession:
    """Thin wrapper over a psycopg2 connection with one shared cursor."""

    def __init__(self, connection: Any) -> None:
        self._connection = connection
        self._cursor: Any = None

    @property
    def cursor(self) -> Any:
        if self._cursor is None:
            self._cursor = self._connection.cursor()
        return self._cursor

    def query(self, statement: str, params: Sequence[Any] | None = None) -> list[tuple[Any, ...]]:
        self.cursor.execute(statement, params)
        return list(self.cursor.fetchall())

    def execute(self, statement: str, params: Sequence[Any] | None = None) -> int:
        """Run a statement and return its rowcount (-1 when not applicable)."""
        self.cursor.execute(statement, params)
        return self.cursor.rowcount

    def stream(self, statement: str, fetch_size: int = 1000) -> Iterator[tuple[Any, ...]]:
        """Yield result rows through a server-side (named) cursor.

        WITH HOLD lets the cursor live outside a transaction block, which the
        autocommit connection requires. At most fetch_size rows are held
        client-side at a time.
        """
        cursor = self._connection.cursor(name=f"pgjsonl_{uuid.uuid4().hex[:12]}", withhold=True)
        cursor.itersize = fetch_size
        try:
            cursor.execute(statement)
            while True:
                rows = cursor.fetchmany(fetch_size)
                if not rows:
                    return
                yield from rows
        finally:
            cursor.close()

    def begin(self) -> None:
        self.execute("BEGIN")

    def commit(self) -> None:
        self.execute("COMMIT")

    def rollback(self) -> None:
        self.execute("ROLLBACK")

    def close(self) -> None:
        if self._cursor is not None:
            self._cursor.close()
            self._cursor = None


def build_dsn(params: ConnectionParams) -> str:
    """libpq connection string with every value escaped by make_dsn."""
    return make_dsn(
        host=params.host,
        port=params.port,
        dbname=params.database or None,
        user=params.user or None,
        password=params.password or None,
    )


@contextmanager
def open_session(params: ConnectionParams) -> Iterator[DatabaseSession]:  # pragma: no cover (thin wrapper; tested via integration)
    """Open a psycopg2 connection and yield a DatabaseSession.

    The connection runs in autocommit mode; transaction boundaries are the
    caller's explicit BEGIN/COMMIT/ROLLBACK statements.
    """
    conn = psycopg2.connect(build_dsn(params), application_name="pg-jsonl")
    conn.autocommit = True
    session = DatabaseSession(conn)
    try:
        yield session
    finally:
        try:
            session.close()
        finally:
            conn.close()
