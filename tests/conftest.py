# Shared pytest fixtures
from __future__ import annotations

import copy
import json
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
import pytest

from pgjsonl.db.connection import DatabaseSession

_QUALIFIED = re.compile(r'"((?:[^"]|"")*)"\."((?:[^"]|"")*)"')
_INSERT = re.compile(r'^INSERT INTO (\S+) \((.*)\) VALUES %s$')


def _table_of(statement: str) -> str:
    m = _QUALIFIED.search(statement)
    assert m is not None, f"no qualified table in: {statement}"
    return m.group(2).replace('""', '"')


class FakeCursor:
    """Cursor stand-in that routes every statement to FakeDatabase."""

    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.rowcount = -1
        self._results: list[tuple[Any, ...]] = []

    def execute(self, statement: str, params: Any = None) -> None:
        self.rowcount, self._results = self.db.run(statement, params)

    def fetchall(self) -> list[tuple[Any, ...]]:
        rows, self._results = self._results, []
        return rows

    def fetchmany(self, size: int) -> list[tuple[Any, ...]]:
        rows, self._results = self._results[:size], self._results[size:]
        return rows

    def close(self) -> None:
        pass


class FakeDatabase:
    """Tiny in-memory model of the statements the services issue.

    tables: table -> list of row dicts
    columns: table -> declared column names (None = accept any column)
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.columns: dict[str, list[str] | None] = {}
        self.column_types: dict[str, dict[str, str]] = {}
        self.statements: list[str] = []
        self.replication_role = "origin"
        self.fail_on: dict[str, Exception] = {}
        self.fail_insert: dict[str, Exception] = {}
        self._snapshot: tuple[Any, ...] | None = None

    def add_table(self, name: str, columns: list[str] | None = None, rows: list[dict[str, Any]] | None = None) -> None:
        self.tables[name] = list(rows or [])
        self.columns[name] = columns

    def run(self, statement: str, params: Any = None) -> tuple[int, list[tuple[Any, ...]]]:
        self.statements.append(statement)
        for needle, exc in self.fail_on.items():
            if needle in statement:
                raise exc
        if statement == "BEGIN":
            self._snapshot = (copy.deepcopy(self.tables), dict(self.columns), dict(self.column_types))
            return -1, []
        if statement == "COMMIT":
            self._snapshot = None
            return -1, []
        if statement == "ROLLBACK":
            if self._snapshot is not None:
                self.tables, self.columns, self.column_types = self._snapshot
                self._snapshot = None
            return -1, []
        if statement.startswith("SET session_replication_role"):
            self.replication_role = "replica" if statement.endswith("replica") else "origin"
            return -1, []
        if "information_schema.tables" in statement and "table_type" in statement:
            return len(self.tables), [(t,) for t in sorted(self.tables)]
        if "information_schema.tables" in statement:
            _schema, table = params
            return 1, [(table in self.tables,)]
        if statement.startswith("CREATE TABLE"):
            table = _table_of(statement)
            if table in self.tables:
                raise psycopg2.ProgrammingError(f'relation "{table}" already exists')
            body = statement[statement.index("(") + 1:-1]
            types: dict[str, str] = {}
            for col in body.split(", "):
                name, sql_type = col.split(" ", 1)
                types[name.strip('"')] = sql_type
            self.add_table(table, list(types))
            self.column_types[table] = types
            return -1, []
        if statement.startswith("DELETE FROM"):
            table = _table_of(statement)
            if table not in self.tables:
                raise psycopg2.ProgrammingError(f'relation "{table}" does not exist')
            count = len(self.tables[table])
            self.tables[table] = []
            return count, []
        if statement.startswith("SELECT row_to_json"):
            table = _table_of(statement)
            if table not in self.tables:
                raise psycopg2.ProgrammingError(f'relation "{table}" does not exist')
            rows = [(json.dumps(r),) for r in self.tables[table]]
            return len(rows), rows
        raise AssertionError(f"unexpected statement: {statement}")

    def insert(self, statement: str, rows: list[list[Any]]) -> None:
        m = _INSERT.match(statement)
        assert m is not None, statement
        self.statements.append(statement)
        table = _table_of(m.group(1))
        columns = [c.strip('"') for c in m.group(2).split(",")]
        if table in self.fail_insert:
            raise self.fail_insert[table]
        if table not in self.tables:
            raise psycopg2.ProgrammingError(f'relation "{table}" does not exist')
        declared = self.columns.get(table)
        if declared is not None:
            unknown = [c for c in columns if c not in declared]
            if unknown:
                raise psycopg2.ProgrammingError(f'column "{unknown[0]}" of relation "{table}" does not exist')
        for row in rows:
            values = [getattr(v, "adapted", v) for v in row]
            self.tables[table].append(dict(zip(columns, values)))


@pytest.fixture()
def fake_db(monkeypatch) -> FakeDatabase:
    """In-memory database; execute_values is routed to it."""
    db = FakeDatabase()
    import pgjsonl.db.batch_insert as bi

    def fake_execute_values(cursor, sql, rows, template=None, page_size=100, fetch=False):
        db.insert(sql, [list(r) for r in rows])

    monkeypatch.setattr(bi, "execute_values", fake_execute_values)
    return db


class _FakeConnection:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db

    def cursor(self, name: str | None = None, withhold: bool = False) -> FakeCursor:
        return FakeCursor(self.db)


@pytest.fixture()
def session(fake_db: FakeDatabase) -> DatabaseSession:
    return DatabaseSession(_FakeConnection(fake_db))


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    d = tmp_path / "data"
    d.mkdir()
    return d


@pytest.fixture()
def write_jsonl(data_dir: Path):
    """write_jsonl('users', [{...}, ...]) or write_jsonl('users', 'raw text')"""
    def _write(table: str, rows: list[dict[str, Any]] | str) -> Path:
        path = data_dir / f"{table}.jsonl"
        if isinstance(rows, str):
            path.write_text(rows, encoding="utf-8")
        else:
            path.write_text("".join(json.dumps(r) + "\n" for r in rows), encoding="utf-8")
        return path
    return _write


@pytest.fixture()
def temp_workdir(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def cli_env(temp_workdir: Path, session: DatabaseSession, monkeypatch) -> Path:
    """Run main() against the fake database from an empty working directory."""
    for var in ("PGHOST", "PGPORT", "PGDATABASE", "PGUSER", "PGPASSWORD", "PGSCHEMA"):
        # setenv first so teardown also removes values loaded from .env
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)

    @contextmanager
    def fake_open_session(params):
        yield session

    monkeypatch.setattr("pgjsonl.cli.app.open_session", fake_open_session)
    return temp_workdir
