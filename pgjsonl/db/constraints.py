from __future__ import annotations

import logging
from typing import Any

import psycopg2

from .connection import DatabaseSession

"""Foreign-key suspension around a whole import run.

Table files are loaded in directory-listing order, not dependency order, so a
child row can arrive before its parent. With suspension enabled the session
runs with session_replication_role = replica, which skips the internal
triggers that enforce foreign keys. The setting is session scoped and is not
undone by the per-table ROLLBACKs.

ForeignKeyGuard is used as a context manager: suspend() on enter (failure
raises ConstraintError before any table is touched), restore() on every exit
path. A failed restore is recorded on the guard instead of raised so the
caller can attach it to the report as a warning.
"""

__all__ = [
    "ConstraintError",
    "ForeignKeyGuard",
]

SUSPEND_SQL = "SET session_replication_role = replica"
RESTORE_SQL = "SET session_replication_role = DEFAULT"


class ConstraintError(Exception):
    """Raised when foreign-key enforcement cannot be suspended or restored."""


class ForeignKeyGuard:
    def __init__(
        self,
        session: DatabaseSession,
        enabled: bool,
        logger: logging.Logger | None = None,
    ) -> None:
        self.session = session
        self.enabled = enabled
        self.logger = logger or logging.getLogger(__name__)
        self.suspended = False
        self.restore_error: str | None = None

    def suspend(self) -> None:
        if not self.enabled:
            return
        try:
            self.session.execute(SUSPEND_SQL)
        except psycopg2.Error as e:
            raise ConstraintError(f"failed to suspend foreign keys: {e}") from e
        self.suspended = True
        self.logger.info("foreign key enforcement suspended for this session")

    def restore(self) -> None:
        if not self.enabled or not self.suspended:
            return
        try:
            # An aborted transaction would reject the SET
            self.session.rollback()
        except psycopg2.Error:
            self.logger.debug("rollback before restore failed", exc_info=True)
        try:
            self.session.execute(RESTORE_SQL)
        except psycopg2.Error as e:
            raise ConstraintError(f"failed to restore foreign keys: {e}") from e
        self.suspended = False
        self.logger.info("foreign key enforcement restored")

    def __enter__(self) -> ForeignKeyGuard:
        self.suspend()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        try:
            self.restore()
        except ConstraintError as e:
            self.restore_error = str(e)
            self.logger.error("%s", e)
