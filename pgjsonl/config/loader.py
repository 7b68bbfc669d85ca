from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_SCHEMA,
    ConnectionParams,
    ExportRequest,
    ImportOptions,
    ImportRequest,
)
from ..services.exporter import EXPORT_FORMATS

"""Configuration loading and precedence resolution.

Sources, highest precedence first:
1. command-line flags
2. environment (PGHOST, PGPORT, PGDATABASE, PGUSER, PGPASSWORD, PGSCHEMA),
   usually populated from .env by the CLI
3. optional YAML file, validated against config_schema.json
4. built-in defaults

Everything returned here is immutable; services never re-read configuration.
"""

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"

DEFAULT_OUTPUT_DIR = "./output"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class FileConfig:
    """Raw, schema-validated sections of the YAML file."""
    database: dict[str, Any] = field(default_factory=dict)
    import_: dict[str, Any] = field(default_factory=dict)
    export: dict[str, Any] = field(default_factory=dict)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the packaged JSON schema.

    Raises:
        ConfigError: unreadable schema file or a schema violation
    """
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    try:
        jsonschema.validate(data, schema)
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        prefix = f"{location}: " if location else ""
        raise ConfigError(f"config validation failed: {prefix}{e.message}") from e


def load_config(path: Path | None) -> FileConfig:
    if path is None:
        return FileConfig()
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    return FileConfig(
        database=dict(data.get("database", {})),
        import_=dict(data.get("import", {})),
        export=dict(data.get("export", {})),
    )


def parse_name_list(text: str | None) -> frozenset[str]:
    """'a, b,c' -> {'a', 'b', 'c'}; empty entries are ignored."""
    if not text:
        return frozenset()
    return frozenset(part.strip() for part in text.split(",") if part.strip())


def parse_skip_columns(text: str | None) -> dict[str, frozenset[str]]:
    """'users.password,orders.note' -> {'users': {'password'}, 'orders': {'note'}}.

    Raises:
        ConfigError: an entry is not of the form table.column
    """
    result: dict[str, set[str]] = {}
    if not text:
        return {}
    for entry in text.split(","):
        entry = entry.strip()
        if not entry:
            continue
        table, sep, column = entry.partition(".")
        if not sep or not table or not column:
            raise ConfigError(f"invalid skip-columns entry '{entry}': expected table.column")
        result.setdefault(table, set()).add(column)
    return {t: frozenset(cols) for t, cols in result.items()}


def _merge_skip_columns(*sources: Mapping[str, Any]) -> dict[str, frozenset[str]]:
    merged: dict[str, set[str]] = {}
    for source in sources:
        for table, columns in source.items():
            merged.setdefault(table, set()).update(columns)
    return {t: frozenset(cols) for t, cols in merged.items()}


def _first(*values: Any) -> Any:
    for v in values:
        if v is not None and v != "":
            return v
    return None


def resolve_connection(
    args: Any, file_cfg: FileConfig, environ: Mapping[str, str] | None = None
) -> ConnectionParams:
    env = os.environ if environ is None else environ
    db = file_cfg.database

    port_raw = _first(getattr(args, "port", None), env.get("PGPORT"), db.get("port"), 5432)
    try:
        port = int(port_raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid port: {port_raw!r}") from e

    database = _first(getattr(args, "database", None), env.get("PGDATABASE"), db.get("database"))
    if not database:
        raise ConfigError("database name is required (--database, PGDATABASE or config)")
    user = _first(getattr(args, "username", None), env.get("PGUSER"), db.get("user"))
    if not user:
        raise ConfigError("username is required (--username, PGUSER or config)")

    return ConnectionParams(
        host=_first(getattr(args, "host", None), env.get("PGHOST"), db.get("host"), "localhost"),
        port=port,
        database=database,
        user=user,
        password=_first(getattr(args, "password", None), env.get("PGPASSWORD"), db.get("password")),
        schema=_first(getattr(args, "schema", None), env.get("PGSCHEMA"), db.get("schema"), DEFAULT_SCHEMA),
    )


def build_import_request(
    args: Any, file_cfg: FileConfig, environ: Mapping[str, str] | None = None
) -> ImportRequest:
    """Combine CLI arguments and file configuration into an ImportRequest.

    Raises:
        ConfigError: missing input, malformed filters or invalid sizes
    """
    section = file_cfg.import_
    connection = resolve_connection(args, file_cfg, environ)

    input_dir = getattr(args, "input_dir", None)
    single_file = getattr(args, "file", None)
    source = _first(single_file, input_dir, section.get("input"))
    if not source:
        raise ConfigError("an input directory (--input-dir) or file (--file) is required")

    skip_tables = parse_name_list(getattr(args, "skip_tables", None)) | frozenset(
        section.get("skip_tables", [])
    )
    skip_columns = _merge_skip_columns(
        section.get("skip_columns", {}),
        parse_skip_columns(getattr(args, "skip_columns", None)),
    )

    def _flag(name: str, key: str) -> bool:
        value = getattr(args, name, None)
        return bool(value) if value is not None else bool(section.get(key, False))

    try:
        options = ImportOptions(
            create_tables=_flag("create_tables", "create_tables"),
            clear_before_load=_flag("clear", "clear"),
            disable_foreign_keys=_flag("disable_foreign_keys", "disable_foreign_keys"),
            skip_tables=skip_tables,
            skip_columns=skip_columns,
            batch_size=_first(getattr(args, "batch_size", None), section.get("batch_size"), DEFAULT_BATCH_SIZE),
            sample_size=_first(getattr(args, "sample_size", None), section.get("sample_size"), DEFAULT_SAMPLE_SIZE),
        )
    except ValueError as e:
        raise ConfigError(str(e)) from e

    return ImportRequest(connection=connection, source=Path(source), options=options)


def build_export_request(
    args: Any, file_cfg: FileConfig, environ: Mapping[str, str] | None = None
) -> ExportRequest:
    section = file_cfg.export
    connection = resolve_connection(args, file_cfg, environ)

    tables_arg = getattr(args, "tables", None)
    if tables_arg:
        tables: frozenset[str] | None = parse_name_list(tables_arg)
    elif section.get("tables"):
        tables = frozenset(section["tables"])
    else:
        tables = None

    output_format = _first(getattr(args, "format", None), section.get("format"), "jsonl")
    if output_format not in EXPORT_FORMATS:
        raise ConfigError(f"unknown export format: {output_format}")

    return ExportRequest(
        connection=connection,
        output_dir=Path(_first(getattr(args, "output_dir", None), section.get("output_dir"), DEFAULT_OUTPUT_DIR)),
        tables=tables,
        skip_tables=parse_name_list(getattr(args, "skip_tables", None)) | frozenset(section.get("skip_tables", [])),
        output_format=output_format,
    )
