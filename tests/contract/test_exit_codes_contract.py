from __future__ import annotations

from pathlib import Path

import psycopg2

from pgjsonl.cli import main as cli_main
from pgjsonl.cli.app import EXIT_FAILURE, EXIT_SUCCESS
from pgjsonl.db.constraints import RESTORE_SQL, SUSPEND_SQL

"""Exit code contract: 0 only when every table succeeded, 1 otherwise."""

CONN_ARGS = ["-d", "app", "-u", "me", "-w", "secret"]


def _dump(root: Path, **files: str) -> str:
    d = root / "dump"
    d.mkdir()
    for table, text in files.items():
        (d / f"{table}.jsonl").write_text(text, encoding="utf-8")
    return str(d)


def test_exit_code_values():
    assert EXIT_SUCCESS == 0
    assert EXIT_FAILURE == 1


def test_exit_code_all_success(cli_env: Path, fake_db):
    src = _dump(cli_env, users='{"id": 1}\n', orders='{"id": 2}\n')
    assert cli_main(["import", *CONN_ARGS, "-i", src, "--create-tables", "--no-progress"]) == 0


def test_exit_code_no_files_is_success(cli_env: Path, fake_db):
    src = _dump(cli_env)
    assert cli_main(["import", *CONN_ARGS, "-i", src, "--no-progress"]) == 0


def test_exit_code_partial_failure(cli_env: Path, fake_db):
    src = _dump(cli_env, users='{"id": 1}\n', orders="[1, 2]\n")
    assert cli_main(["import", *CONN_ARGS, "-i", src, "--create-tables", "--no-progress"]) == 1


def test_exit_code_fatal_startup(cli_env: Path):
    assert cli_main(["import", "-i", "."]) == 1


def test_exit_code_fk_suspend_failure(cli_env: Path, fake_db, capsys):
    fake_db.fail_on[SUSPEND_SQL] = psycopg2.ProgrammingError("permission denied")
    src = _dump(cli_env, users='{"id": 1}\n')
    code = cli_main([
        "import", *CONN_ARGS, "-i", src, "--create-tables", "--disable-foreign-keys", "--no-progress",
    ])
    assert code == 1
    assert "ERROR aborted: failed to suspend foreign keys" in capsys.readouterr().out


def test_exit_code_fk_restore_failure_still_succeeds(cli_env: Path, fake_db, capsys):
    """A restore failure is a warning; the loaded tables stay committed."""
    fake_db.fail_on[RESTORE_SQL] = psycopg2.OperationalError("connection lost")
    src = _dump(cli_env, users='{"id": 1}\n')
    code = cli_main([
        "import", *CONN_ARGS, "-i", src, "--create-tables", "--disable-foreign-keys", "--no-progress",
    ])
    assert code == 0
    assert "WARN failed to restore foreign keys" in capsys.readouterr().out


def test_exit_code_export(cli_env: Path, fake_db):
    fake_db.add_table("users", rows=[{"id": 1}])
    assert cli_main(["export", *CONN_ARGS, "-o", "out"]) == 0
    fake_db.fail_on["row_to_json"] = psycopg2.ProgrammingError("permission denied")
    assert cli_main(["export", *CONN_ARGS, "-o", "out"]) == 1
