from __future__ import annotations

from argparse import Namespace
from pathlib import Path

import pytest

from pgjsonl.config.loader import (
    ConfigError,
    FileConfig,
    build_export_request,
    build_import_request,
    load_config,
    parse_name_list,
    parse_skip_columns,
    resolve_connection,
)

FULL_YAML = """
database:
  host: db.internal
  port: 6543
  database: app
  user: loader
  schema: staging
import:
  input: ./dump
  create_tables: true
  skip_tables: [audit]
  skip_columns:
    users: [password]
  batch_size: 200
export:
  output_dir: ./out
  format: json
"""


def _args(**kwargs) -> Namespace:
    return Namespace(**kwargs)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "pg-jsonl.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_none_returns_empty():
    cfg = load_config(None)
    assert cfg == FileConfig()


def test_load_config_full(tmp_path: Path):
    cfg = load_config(_write(tmp_path, FULL_YAML))
    assert cfg.database["host"] == "db.internal"
    assert cfg.import_["skip_columns"] == {"users": ["password"]}
    assert cfg.export["format"] == "json"


def test_load_config_empty_file(tmp_path: Path):
    assert load_config(_write(tmp_path, "")) == FileConfig()


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(tmp_path / "absent.yml")


def test_load_config_invalid_yaml(tmp_path: Path):
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(_write(tmp_path, "database: [unclosed"))


def test_load_config_root_must_be_mapping(tmp_path: Path):
    with pytest.raises(ConfigError, match="config root must be a mapping"):
        load_config(_write(tmp_path, "- a\n- b\n"))


@pytest.mark.parametrize(
    "text, fragment",
    [
        ("database:\n  port: 0\n", "database.port"),
        ("import:\n  batch_size: 1\n", "import.batch_size"),
        ("import:\n  unknown_flag: true\n", "unknown_flag"),
        ("export:\n  format: csv\n", "export.format"),
        ("extra: 1\n", "extra"),
    ],
)
def test_load_config_schema_violations(tmp_path: Path, text: str, fragment: str):
    with pytest.raises(ConfigError, match="config validation failed") as exc:
        load_config(_write(tmp_path, text))
    assert fragment in str(exc.value)


def test_parse_name_list():
    assert parse_name_list("a, b,,c ") == frozenset({"a", "b", "c"})
    assert parse_name_list(None) == frozenset()
    assert parse_name_list("") == frozenset()


def test_parse_skip_columns():
    parsed = parse_skip_columns("users.password, users.token,orders.note")
    assert parsed == {
        "users": frozenset({"password", "token"}),
        "orders": frozenset({"note"}),
    }
    assert parse_skip_columns(None) == {}


@pytest.mark.parametrize("entry", ["password", ".password", "users."])
def test_parse_skip_columns_rejects_malformed(entry: str):
    with pytest.raises(ConfigError, match="expected table.column"):
        parse_skip_columns(entry)


def test_resolve_connection_precedence():
    """CLI over environment over file over defaults."""
    cfg = FileConfig(database={"host": "file-host", "database": "filedb", "user": "fileuser", "port": 7000})
    env = {"PGHOST": "env-host", "PGUSER": "envuser"}
    params = resolve_connection(_args(host="cli-host", database=None), cfg, env)
    assert params.host == "cli-host"
    assert params.user == "envuser"
    assert params.database == "filedb"
    assert params.port == 7000
    assert params.schema == "public"
    assert params.password is None


def test_resolve_connection_defaults():
    params = resolve_connection(_args(database="app", username="me"), FileConfig(), {})
    assert params.host == "localhost"
    assert params.port == 5432


def test_resolve_connection_env_port_string():
    params = resolve_connection(_args(), FileConfig(), {"PGDATABASE": "app", "PGUSER": "me", "PGPORT": "6000"})
    assert params.port == 6000


def test_resolve_connection_invalid_port():
    with pytest.raises(ConfigError, match="invalid port"):
        resolve_connection(_args(), FileConfig(), {"PGDATABASE": "app", "PGUSER": "me", "PGPORT": "abc"})


def test_resolve_connection_requires_database_and_user():
    with pytest.raises(ConfigError, match="database name is required"):
        resolve_connection(_args(username="me"), FileConfig(), {})
    with pytest.raises(ConfigError, match="username is required"):
        resolve_connection(_args(database="app"), FileConfig(), {})


def test_password_not_in_repr():
    params = resolve_connection(_args(database="app", username="me", password="hunter2"), FileConfig(), {})
    assert params.password == "hunter2"
    assert "hunter2" not in repr(params)


def test_build_import_request_from_cli():
    args = _args(
        database="app",
        username="me",
        input_dir="./dump",
        create_tables=True,
        clear=None,
        disable_foreign_keys=True,
        skip_tables="audit,tmp",
        skip_columns="users.password",
        batch_size=50,
        sample_size=None,
    )
    request = build_import_request(args, FileConfig(), {})
    assert request.source == Path("./dump")
    opts = request.options
    assert opts.create_tables
    assert not opts.clear_before_load
    assert opts.disable_foreign_keys
    assert opts.skip_tables == frozenset({"audit", "tmp"})
    assert opts.columns_skipped_for("users") == frozenset({"password"})
    assert opts.batch_size == 50
    assert opts.sample_size == 100


def test_build_import_request_single_file_wins():
    args = _args(database="app", username="me", file="./dump/users.jsonl", input_dir=None)
    request = build_import_request(args, FileConfig(), {})
    assert request.source == Path("./dump/users.jsonl")


def test_build_import_request_merges_file_config(tmp_path: Path):
    cfg = load_config(_write(tmp_path, FULL_YAML))
    args = _args(skip_tables="tmp", skip_columns="users.token", clear=True)
    request = build_import_request(args, cfg, {})
    opts = request.options
    assert request.connection.schema == "staging"
    assert request.source == Path("./dump")
    assert opts.create_tables
    assert opts.clear_before_load
    assert opts.skip_tables == frozenset({"audit", "tmp"})
    assert opts.columns_skipped_for("users") == frozenset({"password", "token"})
    assert opts.batch_size == 200


def test_build_import_request_requires_input():
    with pytest.raises(ConfigError, match="input directory"):
        build_import_request(_args(database="app", username="me"), FileConfig(), {})


def test_build_import_request_rejects_batch_size_one():
    args = _args(database="app", username="me", input_dir=".", batch_size=1)
    with pytest.raises(ConfigError, match="batch_size must be greater than 1"):
        build_import_request(args, FileConfig(), {})


def test_build_export_request_defaults():
    request = build_export_request(_args(database="app", username="me"), FileConfig(), {})
    assert request.output_dir == Path("./output")
    assert request.tables is None
    assert request.output_format == "jsonl"
    assert request.skip_tables == frozenset()


def test_build_export_request_filters(tmp_path: Path):
    cfg = load_config(_write(tmp_path, FULL_YAML))
    args = _args(tables="users,orders", skip_tables="orders", format=None, output_dir=None)
    request = build_export_request(args, cfg, {})
    assert request.tables == frozenset({"users", "orders"})
    assert request.skip_tables == frozenset({"orders"})
    assert request.output_format == "json"
    assert request.output_dir == Path("./out")
