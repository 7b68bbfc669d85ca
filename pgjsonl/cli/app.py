from __future__ import annotations

import argparse
import getpass
import logging
import sys
from dataclasses import replace
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from ..config.loader import (
    ConfigError,
    FileConfig,
    build_export_request,
    build_import_request,
    load_config,
)
from ..db.connection import open_session
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.config_models import ConnectionParams
from ..services.exporter import EXPORT_FORMATS, export_all
from ..services.orchestrator import ProcessingError, import_all
from ..services.summary import (
    render_export_summary_line,
    render_failure_lines,
    render_summary_line,
)

"""CLI entrypoint.

    pg-jsonl import -d mydb -u me -i ./export --create-tables --disable-foreign-keys
    pg-jsonl export -d mydb -u me -o ./export

Exit status: 0 when every table succeeded, 1 otherwise (including
configuration, connection and input errors).
"""

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


def _add_connection_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--host", help="Database host (default: localhost)")
    p.add_argument("-p", "--port", type=int, help="Database port (default: 5432)")
    p.add_argument("-d", "--database", help="Database name")
    p.add_argument("-u", "--username", help="Database username")
    p.add_argument("-w", "--password", help="Database password (prompted if omitted on a TTY)")
    p.add_argument("-s", "--schema", help="Database schema (default: public)")
    p.add_argument("--config", type=Path, help="YAML configuration file")
    p.add_argument("--env-file", type=Path, default=Path(".env"), help="dotenv file (default: .env)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="pg-jsonl", description="PostgreSQL <-> JSONL table mover")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Load JSONL files into tables")
    _add_connection_args(imp)
    source = imp.add_mutually_exclusive_group()
    source.add_argument("-i", "--input-dir", help="Directory of {table}.jsonl files")
    source.add_argument("-f", "--file", help="Single {table}.jsonl file")
    imp.add_argument("--create-tables", action="store_true", default=None,
                     help="Create missing tables from the observed JSON types")
    imp.add_argument("--clear", action="store_true", default=None,
                     help="Delete existing rows before loading")
    imp.add_argument("--disable-foreign-keys", action="store_true", default=None,
                     help="Suspend foreign-key enforcement during the import")
    imp.add_argument("--skip-columns", help="Columns to skip: table.column,table2.column2")
    imp.add_argument("--skip-tables", help="Tables to skip: comma separated")
    imp.add_argument("--batch-size", type=int, help="Rows per INSERT statement (default: 500)")
    imp.add_argument("--sample-size", type=int, help="Rows sampled for type inference (default: 100)")
    imp.add_argument("--no-progress", action="store_true", help="Disable the progress bar")

    exp = sub.add_parser("export", help="Write every table of a schema to JSON files")
    _add_connection_args(exp)
    exp.add_argument("-o", "--output-dir", help="Output directory (default: ./output)")
    exp.add_argument("--tables", help="Only these tables: comma separated")
    exp.add_argument("--skip-tables", help="Tables to skip: comma separated")
    exp.add_argument("--format", choices=EXPORT_FORMATS, help="jsonl (default) or json array")

    return p.parse_args(argv)


def _load_env_file(path: Path, logger: logging.Logger) -> None:
    """Load .env; its values override the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=True)
        logger.debug("loaded environment from %s", path)


def _with_password(params: ConnectionParams) -> ConnectionParams:
    if params.password is not None or not sys.stdin.isatty():
        return params
    return replace(params, password=getpass.getpass("Enter database password: "))


def _run_import(args: argparse.Namespace, file_cfg: FileConfig, logger: logging.Logger) -> int:
    request = build_import_request(args, file_cfg)
    request = replace(request, connection=_with_password(request.connection))
    conn = request.connection
    logger.info(
        "import source=%s database=%s host=%s:%d schema=%s",
        request.source, conn.database, conn.host, conn.port, conn.schema,
    )

    try:
        with open_session(conn) as session:
            report = import_all(
                request,
                session,
                logger=logger,
                error_log=ErrorLogBuffer(),
                show_progress=not args.no_progress,
            )
    except ProcessingError as e:
        logger.error(f"input: {e}")
        return EXIT_FAILURE
    except psycopg2.Error as e:
        logger.error(f"database: {str(e).strip()}")
        return EXIT_FAILURE

    for line in render_failure_lines(report):
        logger.error(line)
    for warning in report.warnings:
        logger.warning(warning)
    if report.fatal_error:
        logger.error(f"aborted: {report.fatal_error}")
    log_summary(logger, render_summary_line(report)[len("SUMMARY "):])
    return EXIT_SUCCESS if report.success else EXIT_FAILURE


def _run_export(args: argparse.Namespace, file_cfg: FileConfig, logger: logging.Logger) -> int:
    request = build_export_request(args, file_cfg)
    request = replace(request, connection=_with_password(request.connection))
    conn = request.connection
    logger.info(
        "export database=%s host=%s:%d schema=%s output=%s",
        conn.database, conn.host, conn.port, conn.schema, request.output_dir,
    )

    try:
        with open_session(conn) as session:
            report = export_all(request, session, logger=logger)
    except psycopg2.Error as e:
        logger.error(f"database: {str(e).strip()}")
        return EXIT_FAILURE

    if report.error:
        logger.error(f"export: {report.error}")
    log_summary(logger, render_export_summary_line(report)[len("SUMMARY "):])
    return EXIT_SUCCESS if report.success else EXIT_FAILURE


def main(argv: list[str] | None = None) -> int:
    # Only read sys.argv when no list was given: main([]) must not see pytest's args
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(args.env_file, logger)
    try:
        file_cfg = load_config(args.config)
        if args.command == "import":
            return _run_import(args, file_cfg, logger)
        return _run_export(args, file_cfg, logger)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FAILURE

