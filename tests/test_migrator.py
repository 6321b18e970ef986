import re
import sqlite3
from datetime import datetime

import pytest

from bunorm.migrate.migration import PY_TEMPLATE, SQL_TEMPLATE, Migration
from bunorm.migrate.migrations import Migrations
from bunorm.migrate.migrator import MigrationLockedError, Migrator


@pytest.fixture
def db():
    conn = sqlite3.connect(":memory:")
    yield conn
    conn.close()


def _recording(history, label, fail=False):
    def run(db):
        history.append(label)
        if fail:
            raise RuntimeError("failed")

    return run


def _two_migrations(history):
    migrations = Migrations()
    migrations.add(
        Migration(
            name="20060102150405",
            up=_recording(history, "up1"),
            down=_recording(history, "down1"),
        )
    )
    migrations.add(
        Migration(
            name="20060102160405",
            up=_recording(history, "up2"),
            down=_recording(history, "down2"),
        )
    )
    return migrations


def _failing_migrations(history):
    migrations = Migrations()
    migrations.add(
        Migration(name="20060102150405", up=_recording(history, "up1"), down=_recording(history, "down1"))
    )
    migrations.add(
        Migration(
            name="20060102160405",
            up=_recording(history, "up2", fail=True),
            down=_recording(history, "down2"),
        )
    )
    migrations.add(
        Migration(
            name="20060102170405",
            up=_recording(history, "up3", fail=True),
            down=_recording(history, "down3"),
        )
    )
    return migrations


def test_migrate_up_and_down(db):
    history = []
    m = Migrator(db, _two_migrations(history))
    m.reset()

    group = m.migrate()
    assert group.id == 1
    assert len(group.migrations) == 2
    assert history == ["up1", "up2"]

    history.clear()
    group = m.rollback()
    assert group.id == 1
    assert len(group.migrations) == 2
    assert history == ["down2", "down1"]


def test_migrate_up_error(db):
    history = []
    m = Migrator(db, _failing_migrations(history))
    m.reset()

    with pytest.raises(RuntimeError, match="^failed$") as info:
        m.migrate()
    group = info.value.migration_group
    assert group.id == 1
    assert len(group.migrations) == 2
    assert history == ["up1", "up2"]

    history.clear()
    group = m.rollback()
    assert group.id == 1
    assert len(group.migrations) == 2
    assert history == ["down2", "down1"]


def test_mark_applied_on_success(db):
    history = []
    m = Migrator(db, _failing_migrations(history), mark_applied_on_success=True)
    m.reset()

    with pytest.raises(RuntimeError, match="failed"):
        m.migrate()
    assert [x.name for x in m.applied_migrations()] == ["20060102150405"]

    history.clear()
    group = m.rollback()
    assert len(group.migrations) == 1
    assert history == ["down1"]


def test_second_migrate_creates_new_group(db):
    history = []
    migrations = _two_migrations(history)
    m = Migrator(db, migrations)
    m.reset()
    assert m.migrate().id == 1

    migrations.add(Migration(name="20060102180405", up=_recording(history, "up3")))
    group = m.migrate()
    assert group.id == 2
    assert [x.name for x in group.migrations] == ["20060102180405"]
    assert history == ["up1", "up2", "up3"]


def test_migrate_with_nothing_pending_returns_zero_group(db):
    history = []
    m = Migrator(db, _two_migrations(history))
    m.reset()
    m.migrate()
    group = m.migrate()
    assert group.is_zero()
    assert history == ["up1", "up2"]


def test_migrate_nop_marks_without_running(db):
    history = []
    m = Migrator(db, _two_migrations(history))
    m.reset()
    group = m.migrate(nop=True)
    assert len(group.migrations) == 2
    assert history == []
    assert len(m.applied_migrations()) == 2


def test_migrations_with_status(db):
    history = []
    m = Migrator(db, _two_migrations(history))
    m.reset()
    before = m.migrations_with_status()
    assert [x.is_applied() for x in before] == [False, False]

    m.migrate()
    after = m.migrations_with_status()
    assert [x.name for x in after] == ["20060102150405", "20060102160405"]
    assert all(x.is_applied() for x in after)
    assert [x.group_id for x in after] == [1, 1]
    assert all(isinstance(x.migrated_at, datetime) for x in after)


def test_empty_migrations_rejected(db):
    m = Migrator(db, Migrations())
    m.reset()
    with pytest.raises(ValueError, match="no any migrations"):
        m.migrate()
    with pytest.raises(ValueError, match="no any migrations"):
        m.rollback()


def test_lock_twice_fails(db):
    m = Migrator(db, Migrations())
    m.reset()
    m.lock()
    with pytest.raises(MigrationLockedError, match="already locked"):
        m.lock()
    m.unlock()
    m.lock()
    with pytest.raises(MigrationLockedError):
        m.lock()


def test_migrate_while_locked(db):
    history = []
    m = Migrator(db, _two_migrations(history))
    m.reset()
    m.lock()
    with pytest.raises(MigrationLockedError):
        m.migrate()
    assert history == []


def test_lock_released_after_migrate(db):
    history = []
    m = Migrator(db, _two_migrations(history))
    m.reset()
    m.migrate()
    m.lock()
    with pytest.raises(MigrationLockedError):
        m.lock()


def test_missing_migrations(db):
    history = []
    m = Migrator(db, _two_migrations(history))
    m.reset()
    m.migrate()

    only_first = Migrations()
    only_first.add(Migration(name="20060102150405"))
    missing = Migrator(db, only_first).missing_migrations()
    assert [x.name for x in missing] == ["20060102160405"]


def test_truncate_table(db):
    history = []
    m = Migrator(db, _two_migrations(history))
    m.reset()
    m.migrate()
    assert len(m.applied_migrations()) == 2
    m.truncate_table()
    assert len(m.applied_migrations()) == 0


def test_mark_applied_and_unapplied(db):
    m = Migrator(db, Migrations())
    m.reset()
    migration = Migration(name="20060102150405", group_id=3)
    m.mark_applied(migration)
    assert migration.id > 0
    applied = m.applied_migrations()
    assert [(x.name, x.group_id) for x in applied] == [("20060102150405", 3)]

    m.mark_unapplied(migration)
    assert len(m.applied_migrations()) == 0


def test_custom_table_names(db):
    history = []
    m = Migrator(db, _two_migrations(history), table="my_migrations", locks_table="my_locks")
    m.reset()
    m.migrate()
    rows = db.execute("SELECT name FROM my_migrations ORDER BY name").fetchall()
    assert rows == [("20060102150405",), ("20060102160405",)]


def test_sql_migrations_end_to_end(db, tmp_path):
    (tmp_path / "20200101000000_create_t.up.sql").write_text(
        "CREATE TABLE t (x INT);\n--bun:split\nINSERT INTO t VALUES (7);\n"
    )
    (tmp_path / "20200101000000_create_t.down.sql").write_text("DROP TABLE t;\n")
    migrations = Migrations()
    migrations.discover(tmp_path)
    m = Migrator(db, migrations)
    m.reset()

    m.migrate()
    assert db.execute("SELECT x FROM t").fetchall() == [(7,)]

    m.rollback()
    tables = db.execute("SELECT name FROM sqlite_master WHERE name = 't'").fetchall()
    assert tables == []


def test_create_py_migration(db, tmp_path):
    m = Migrator(db, Migrations(directory=tmp_path))
    mf = m.create_py_migration("add_users")
    assert re.fullmatch(r"\d{14}_add_users\.py", mf.name)
    assert mf.content == PY_TEMPLATE
    assert (tmp_path / mf.name).read_text() == PY_TEMPLATE


def test_create_sql_migrations(db, tmp_path):
    m = Migrator(db, Migrations(directory=tmp_path))
    up, down = m.create_sql_migrations("add_users")
    assert re.fullmatch(r"\d{14}_add_users\.up\.sql", up.name)
    assert re.fullmatch(r"\d{14}_add_users\.down\.sql", down.name)
    assert (tmp_path / up.name).read_text() == SQL_TEMPLATE
    assert (tmp_path / down.name).read_text() == SQL_TEMPLATE


@pytest.mark.parametrize("name, message", [("", "can't be empty"), ("Bad Name", "invalid migration name")])
def test_create_rejects_bad_names(db, tmp_path, name, message):
    m = Migrator(db, Migrations(directory=tmp_path))
    with pytest.raises(ValueError, match=message):
        m.create_sql_migrations(name)
    assert list(tmp_path.iterdir()) == []