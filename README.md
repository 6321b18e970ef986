# bunorm

Small, dependency-free building blocks for working with SQL databases from
Python, together with a migration runner that works on any DB-API
connection taking `?` placeholders, such as `sqlite3`.

## Installation

```
pip install bunorm
```

To run the test suite, install the `test` extra and run `pytest`:

```
pip install "bunorm[test]"
pytest
```

## What is inside

- `bunorm.tagparser` parses field tags such as `"name,pk,type:varchar(255)"`
  into a `Tag` with a `name` and `options` (a dict from option name to the
  list of values given for it). `Tag.has_option(name)` tells whether an
  option is present, `Tag.option(name)` returns its last value or `None`,
  and `Tag.is_zero()` is true for the empty tag.
- `bunorm.parser.Parser` is a cursor over bytes used when reading query
  templates: `read`, `peek`, `advance`, `skip`, `skip_bytes`, `read_sep`,
  `read_identifier`, `read_number`, `valid` and `remaining`. `read` and
  `peek` return 0 at the end of input.
- `bunorm.timeparse.parse_time` reads dates, times, timestamps and
  timestamps with a `+hh`, `+hh:mm` or `+hh:mm:ss` offset, as well as
  RFC 3339 (`...T...Z`). It returns an aware `datetime`; values without an
  offset are UTC and values without a date fall on 1 January of year 1.
  Text in none of these forms raises `ValueError`.
- `bunorm.naming` converts between `CamelCase` and `snake_case`
  (`underscore`, `camel_cased`) and upper-cases a leading ASCII letter
  (`to_exported`).
- `bunorm.hexenc.HexEncoder` appends bytes to a buffer as a `'\x...'` hex
  literal, or `NULL` when nothing was written. It can be used as a context
  manager, which calls `close()` on exit; `value()` returns the result.
- `bunorm.flag.Flag` is an unsigned 64-bit integer bit set with `has`,
  `set` and `remove`; `set` and `remove` return new flags.

## Examples

```python
from bunorm.tagparser import parse

tag = parse("id,pk,type:geometry(POINT, 4326)")
tag.name              # "id"
tag.has_option("pk")  # True
tag.option("type")    # "geometry(POINT, 4326)"
tag.option("size")    # None
```

```python
from bunorm.naming import underscore, camel_cased

underscore("CamelCasedString")   # "camel_cased_string"
camel_cased("camel_cased")       # "CamelCased"
```

```python
from bunorm.hexenc import HexEncoder

with HexEncoder() as enc:
    enc.write(b"\x01\xff")
enc.value()   # b"'\\x01ff'"
```

## Migrations

`bunorm.migrate` keeps a list of migrations, records in a table which of
them have been applied and runs them in numbered groups.

```python
import sqlite3

from bunorm.migrate.migration import Migration
from bunorm.migrate.migrations import Migrations
from bunorm.migrate.migrator import Migrator


def create_users(db):
    db.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")


def drop_users(db):
    db.execute("DROP TABLE users")


migrations = Migrations(directory="migrations")
migrations.add(Migration(name="20060102150405", up=create_users, down=drop_users))
migrations.discover("migrations")   # picks up *.up.sql / *.down.sql files

db = sqlite3.connect("app.db")
migrator = Migrator(db, migrations)
migrator.init()                  # creates bun_migrations and bun_migration_locks
group = migrator.migrate()       # applies every unapplied migration as one group
migrator.rollback()              # undoes the last group, newest migration first
```

Migration functions are called with the connection passed to `Migrator`.
`Migrator` takes `table`, `locks_table` and `mark_applied_on_success`
arguments; by default a migration is recorded before it runs, and with
`mark_applied_on_success=True` only after it succeeds. `migrate(nop=True)`
and `rollback(nop=True)` only update the records without running anything.
When a migration fails, the exception is raised again with the group as run
so far in its `migration_group` attribute.

Other methods: `migrations_with_status()`, `applied_migrations()`,
`missing_migrations()` (applied but no longer known), `mark_applied`,
`mark_unapplied`, `truncate_table`, `reset`, `lock` and `unlock`. Only one
run may hold the lock: `lock()` raises `MigrationLockedError` when it is
already taken.

SQL migration files are named `<14-digit timestamp>_<name>.up.sql` and
`.down.sql`; `extract_migration_name` splits such a name. A line
`--bun:split` separates statements (see `split_sql`); any other `--bun:`
directive raises `ValueError`. Files ending in `.tx.up.sql` or
`.tx.down.sql` are committed once at the end; others commit after every
statement. `Migrator.create_sql_migrations(name)` and
`Migrator.create_py_migration(name)` write new, timestamped files into the
migrations directory. `Migrations.register(up, down)` adds a migration
named after the file that calls it, and `discover_caller()` discovers SQL
files next to that file.

## What this package does not do

There is no model layer or query builder: tables and rows are not mapped to
classes, and SQL is written by hand. The migration tables are created with
SQLite-style DDL. There is no command-line tool; migrations are run from
your own code.