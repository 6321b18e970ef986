"""A registry of migrations, filled by hand, by registration or from SQL files."""

from __future__ import annotations

import inspect
import os
import re
from dataclasses import replace
from pathlib import Path
from typing import Iterator, Optional, Union

from .migration import Migration, MigrationFunc, MigrationSlice, new_sql_migration_func

_FNAME_RE = re.compile(r"^(\d{14})_([0-9a-z_\-]+)\.", re.ASCII)
_PACKAGE_DIR = Path(__file__).resolve().parent


def _caller_file() -> str:
    """Return the file of the nearest caller outside this package."""
    frame = inspect.currentframe()
    try:
        while frame is not None:
            filename = frame.f_code.co_filename
            try:
                parent = Path(filename).resolve().parent
            except OSError:
                parent = None
            if parent != _PACKAGE_DIR:
                return filename
            frame = frame.f_back
        return ""
    finally:
        del frame


def _walk(root: Path) -> Iterator[str]:
    """Yield file paths under ``root`` relative to it, in lexical order."""

    def visit(directory: Path, prefix: str) -> Iterator[str]:
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            rel = prefix + entry.name
            if entry.is_dir():
                yield from visit(entry, rel + "/")
            else:
                yield rel

    return visit(root, "")


def extract_migration_name(fpath: str) -> tuple[str, str]:
    """Split a file name like ``20060102150405_add_users.up.sql`` into name and comment."""
    fname = os.path.basename(fpath)
    match = _FNAME_RE.match(fname)
    if match is None:
        raise ValueError(f"unsupported migration name format: {fname!r}")
    return match.group(1), match.group(2)


class Migrations:
    """The set of known migrations."""

    def __init__(self, directory: Optional[Union[str, Path]] = None) -> None:
        self._ms: list[Migration] = []
        self._explicit_directory = str(directory) if directory else ""
        self._implicit_directory = os.path.dirname(_caller_file())

    def __iter__(self) -> Iterator[Migration]:
        return iter(self._ms)

    def __len__(self) -> int:
        return len(self._ms)

    def sorted(self) -> MigrationSlice:
        """Copies of the migrations in ascending order of name."""
        return MigrationSlice(replace(m) for m in sorted(self._ms, key=lambda m: m.name))

    def register(self, up: Optional[MigrationFunc], down: Optional[MigrationFunc]) -> None:
        """Add a migration named after the file of the caller."""
        name, comment = extract_migration_name(_caller_file())
        self.add(Migration(name=name, comment=comment, up=up, down=down))

    def add(self, migration: Migration) -> None:
        if not migration.name:
            raise ValueError("migration name is required")
        self._ms.append(migration)

    def discover_caller(self) -> None:
        """Discover SQL migrations in the directory of the caller's file."""
        self.discover(os.path.dirname(_caller_file()) or ".")

    def discover(self, root: Union[str, Path]) -> None:
        """Add ``*.up.sql`` and ``*.down.sql`` files found anywhere under ``root``."""
        root = Path(root)
        for rel in _walk(root):
            is_up = rel.endswith(".up.sql")
            if not is_up and not rel.endswith(".down.sql"):
                continue
            name, comment = extract_migration_name(rel)
            migration = self._get_or_create(name)
            migration.comment = comment
            func = new_sql_migration_func(root, rel)
            if is_up:
                migration.up = func
            else:
                migration.down = func

    def _get_or_create(self, name: str) -> Migration:
        for migration in self._ms:
            if migration.name == name:
                return migration
        migration = Migration(name=name)
        self._ms.append(migration)
        return migration

    def directory(self) -> str:
        """The directory new migration files are written to."""
        if self._explicit_directory:
            return self._explicit_directory
        if self._implicit_directory:
            return self._implicit_directory
        return os.path.dirname(_caller_file())