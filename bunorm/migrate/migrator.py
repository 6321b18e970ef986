"""Applying and rolling back migrations against a DB-API connection."""

from __future__ import annotations

import contextlib
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from ..timeparse import parse_time
from .migration import (
    PY_TEMPLATE,
    SQL_TEMPLATE,
    Migration,
    MigrationFile,
    MigrationGroup,
    MigrationSlice,
)
from .migrations import Migrations

_NAME_RE = re.compile(r"[0-9a-z_\-]+", re.ASCII)
_VERSION_FORMAT = "%Y%m%d%H%M%S"


class MigrationLockedError(RuntimeError):
    """Raised when the migrations table is locked by another run."""


def _attach_group(exc: BaseException, group: MigrationGroup) -> None:
    with contextlib.suppress(AttributeError, TypeError):
        exc.migration_group = group  # type: ignore[attr-defined]


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    return parse_time(str(value))


class Migrator:
    """Runs migrations and records them in a table of the database.

    ``db`` is a DB-API connection that takes ``?`` placeholders, such as a
    ``sqlite3`` connection. Migration functions are called with it.
    """

    def __init__(
        self,
        db: Any,
        migrations: Migrations,
        table: str = "bun_migrations",
        locks_table: str = "bun_migration_locks",
        mark_applied_on_success: bool = False,
    ) -> None:
        self.db = db
        self.migrations = migrations
        self.table = table
        self.locks_table = locks_table
        self.mark_applied_on_success = mark_applied_on_success

    # -- low-level helpers ---------------------------------------------------

    @contextlib.contextmanager
    def _cursor(self) -> Iterator[Any]:
        cur = self.db.cursor()
        try:
            yield cur
            self.db.commit()
        except BaseException:
            with contextlib.suppress(Exception):
                self.db.rollback()
            raise
        finally:
            cur.close()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> Optional[int]:
        with self._cursor() as cur:
            cur.execute(sql, tuple(params))
            return cur.lastrowid

    def _validate(self) -> None:
        if len(self.migrations) == 0:
            raise ValueError("there are no any migrations")

    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        self.lock()
        try:
            yield
        finally:
            with contextlib.suppress(Exception):
                self.unlock()

    # -- status --------------------------------------------------------------

    def migrations_with_status(self) -> MigrationSlice:
        """All known migrations in ascending order, with their applied status."""
        return self._migrations_with_status()[0]

    def _migrations_with_status(self) -> tuple[MigrationSlice, int]:
        ordered = self.migrations.sorted()
        applied = self.applied_migrations()
        by_name = {m.name: m for m in applied}
        for migration in ordered:
            found = by_name.get(migration.name)
            if found is not None:
                migration.id = found.id
                migration.group_id = found.group_id
                migration.migrated_at = found.migrated_at
        return ordered, applied.last_group_id()

    def applied_migrations(self) -> MigrationSlice:
        """Migrations recorded in the migrations table."""
        with self._cursor() as cur:
            cur.execute(f"SELECT id, name, group_id, migrated_at FROM {self.table}")
            rows = cur.fetchall()
        return MigrationSlice(
            Migration(
                id=row[0],
                name=row[1] or "",
                group_id=row[2] or 0,
                migrated_at=_to_datetime(row[3]),
            )
            for row in rows
        )

    def missing_migrations(self) -> MigrationSlice:
        """Applied migrations that can no longer be found."""
        existing = {m.name for m in self.migrations}
        return MigrationSlice(m for m in self.applied_migrations() if m.name not in existing)

    # -- tables --------------------------------------------------------------

    def init(self) -> None:
        """Create the migrations and locks tables if they do not exist."""
        self._execute(
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "name VARCHAR, "
            "group_id BIGINT, "
            "migrated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP)"
        )
        self._execute(
            f"CREATE TABLE IF NOT EXISTS {self.locks_table} ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "table_name VARCHAR UNIQUE)"
        )

    def reset(self) -> None:
        """Drop and recreate the migrations and locks tables."""
        self._execute(f"DROP TABLE IF EXISTS {self.table}")
        self._execute(f"DROP TABLE IF EXISTS {self.locks_table}")
        self.init()

    def truncate_table(self) -> None:
        """Forget every applied migration."""
        self._execute(f"DELETE FROM {self.table}")

    # -- marking -------------------------------------------------------------

    def mark_applied(self, migration: Migration) -> None:
        """Record the migration as applied and store the id it was given."""
        columns = ["name", "group_id"]
        params: list[Any] = [migration.name, migration.group_id]
        if migration.migrated_at is not None:
            columns.append("migrated_at")
            params.append(migration.migrated_at.isoformat(sep=" "))
        placeholders = ", ".join("?" for _ in columns)
        rowid = self._execute(
            f"INSERT INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders})",
            params,
        )
        if rowid is not None:
            migration.id = rowid

    def mark_unapplied(self, migration: Migration) -> None:
        """Remove the record of the migration."""
        self._execute(f"DELETE FROM {self.table} WHERE id = ?", (migration.id,))

    # -- locking -------------------------------------------------------------

    def lock(self) -> None:
        """Take the lock on the migrations table."""
        try:
            self._execute(
                f"INSERT INTO {self.locks_table} (table_name) VALUES (?)", (self.table,)
            )
        except Exception as exc:
            raise MigrationLockedError(
                f"migrations table is already locked ({exc})"
            ) from exc

    def unlock(self) -> None:
        """Release the lock on the migrations table."""
        self._execute(f"DELETE FROM {self.locks_table} WHERE table_name = ?", (self.table,))

    # -- running -------------------------------------------------------------

    def migrate(self, nop: bool = False) -> MigrationGroup:
        """Run unapplied migrations as a new group and return it.

        Stops at the first failing migration; the exception raised carries the
        group as run so far in its ``migration_group`` attribute. With ``nop``
        the migrations are only marked, not run.
        """
        self._validate()
        with self._locked():
            ordered, last_group_id = self._migrations_with_status()
            pending = ordered.unapplied()

            group = MigrationGroup()
            if not pending:
                return group
            group.id = last_group_id + 1

            for i, migration in enumerate(pending):
                migration.group_id = group.id
                try:
                    if not self.mark_applied_on_success:
                        self.mark_applied(migration)
                    group.migrations = MigrationSlice(pending[: i + 1])
                    if not nop and migration.up is not None:
                        migration.up(self.db)
                    if self.mark_applied_on_success:
                        self.mark_applied(migration)
                except Exception as exc:
                    _attach_group(exc, group)
                    raise
            return group

    def rollback(self, nop: bool = False) -> MigrationGroup:
        """Roll back the last group of migrations, newest first, and return it.

        A failure stops the rollback; the exception carries the group in its
        ``migration_group`` attribute.
        """
        self._validate()
        with self._locked():
            last_group = self.migrations_with_status().last_group()
            for migration in reversed(last_group.migrations):
                try:
                    if not self.mark_applied_on_success:
                        self.mark_unapplied(migration)
                    if not nop and migration.down is not None:
                        migration.down(self.db)
                    if self.mark_applied_on_success:
                        self.mark_unapplied(migration)
                except Exception as exc:
                    _attach_group(exc, last_group)
                    raise
            return last_group

    # -- creating files ------------------------------------------------------

    def _gen_migration_name(self, name: str) -> str:
        if not name:
            raise ValueError("migration name can't be empty")
        if _NAME_RE.fullmatch(name) is None:
            raise ValueError(f"invalid migration name: {name!r}")
        version = datetime.now(timezone.utc).strftime(_VERSION_FORMAT)
        return f"{version}_{name}"

    def _write(self, fname: str, content: str) -> MigrationFile:
        path = Path(self.migrations.directory()) / fname
        path.write_text(content, encoding="utf-8")
        return MigrationFile(name=fname, path=str(path), content=content)

    def create_py_migration(self, name: str) -> MigrationFile:
        """Create a Python migration file in the migrations directory."""
        return self._write(self._gen_migration_name(name) + ".py", PY_TEMPLATE)

    def create_sql_migrations(self, name: str) -> list[MigrationFile]:
        """Create an up and a down SQL migration file."""
        full = self._gen_migration_name(name)
        up = self._write(full + ".up.sql", SQL_TEMPLATE)
        down = self._write(full + ".down.sql", SQL_TEMPLATE)
        return [up, down]