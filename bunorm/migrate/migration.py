"""Migration records, groups of applied migrations and SQL migration files."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Union

MigrationFunc = Callable[[Any], None]

DIRECTIVE_PREFIX = "--bun:"

PY_TEMPLATE = '''"""Database migration."""

from . import migrations


def up(db):
    print(" [up migration] ", end="")


def down(db):
    print(" [down migration] ", end="")


migrations.register(up, down)
'''

SQL_TEMPLATE = """SET statement_timeout = 0;

--bun:split

SELECT 1

--bun:split

SELECT 2
"""


@dataclass
class Migration:
    """One migration; it is applied once it has a positive id."""

    name: str = ""
    comment: str = ""
    id: int = 0
    group_id: int = 0
    migrated_at: Optional[datetime] = None
    up: Optional[MigrationFunc] = field(default=None, compare=False, repr=False)
    down: Optional[MigrationFunc] = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        return f"{self.name}_{self.comment}"

    def is_applied(self) -> bool:
        return self.id > 0


class MigrationSlice(list):
    """A list of migrations with helpers for status and grouping."""

    def __str__(self) -> str:
        if not self:
            return "empty"
        if len(self) > 5:
            return f"{len(self)} migrations ({self[0].name} ... {self[-1].name})"
        return ", ".join(str(m) for m in self)

    def applied(self) -> "MigrationSlice":
        """Applied migrations in descending order of name, as rollback needs them."""
        return MigrationSlice(
            sorted((m for m in self if m.is_applied()), key=lambda m: m.name, reverse=True)
        )

    def unapplied(self) -> "MigrationSlice":
        """Unapplied migrations in ascending order of name, as migrate needs them."""
        return MigrationSlice(
            sorted((m for m in self if not m.is_applied()), key=lambda m: m.name)
        )

    def last_group_id(self) -> int:
        """The highest group id, or 0 when no migration belongs to a group."""
        return max((m.group_id for m in self), default=0) if self else 0

    def last_group(self) -> "MigrationGroup":
        """The group of migrations that were applied last."""
        group = MigrationGroup(id=max(self.last_group_id(), 0))
        if group.id == 0:
            return group
        group.migrations = MigrationSlice(m for m in self if m.group_id == group.id)
        return group


@dataclass
class MigrationGroup:
    """Migrations applied together in one run."""

    id: int = 0
    migrations: MigrationSlice = field(default_factory=MigrationSlice)

    def is_zero(self) -> bool:
        return self.id == 0 and len(self.migrations) == 0

    def __str__(self) -> str:
        if self.is_zero():
            return "nil"
        return f"group #{self.id} ({self.migrations})"


@dataclass
class MigrationFile:
    """A migration file that was created on disk."""

    name: str
    path: str
    content: str


def split_sql(text: str) -> list[str]:
    """Split SQL text into queries at ``--bun:split`` lines.

    Raises ValueError for any other ``--bun:`` directive.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    queries: list[str] = []
    query: list[str] = []
    for line in lines:
        if line.endswith("\r"):
            line = line[:-1]
        if line.startswith(DIRECTIVE_PREFIX):
            directive = line[len(DIRECTIVE_PREFIX):]
            if directive == "split":
                queries.append("".join(query))
                query = []
                continue
            raise ValueError(f"unknown directive: {directive!r}")
        query.append(line + "\n")

    if query:
        queries.append("".join(query))
    return queries


def new_sql_migration_func(root: Union[str, Path], name: str) -> MigrationFunc:
    """Return a function that runs the SQL file ``name`` under ``root``.

    The function takes a DB-API connection. Files named ``*.tx.up.sql`` or
    ``*.tx.down.sql`` run as one transaction; others commit each query.
    """
    path = Path(root) / name
    is_tx = name.endswith(".tx.up.sql") or name.endswith(".tx.down.sql")

    def run(db: Any) -> None:
        queries = split_sql(path.read_text(encoding="utf-8"))
        cursor = db.cursor()
        try:
            for query in queries:
                cursor.execute(query)
                if not is_tx:
                    db.commit()
        except BaseException:
            if is_tx:
                with contextlib.suppress(Exception):
                    db.commit()
            raise
        else:
            if is_tx:
                db.commit()
        finally:
            cursor.close()

    return run