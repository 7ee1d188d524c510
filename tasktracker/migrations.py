"""
Schema upgrades.

Three generations of the schema exist in the wild:

  Gen0  tasks carry a mutable ``completed`` flag and ``last_completed``
        timestamp, reset lazily whenever the task list is read
  Gen1  adds ``tasks.reset_day`` and the ``task_completions`` ledger, keeping
        the old flag around as a cache
  Gen2  drops the flag; status is derived from the ledger only

Upgrades are an ordered list of numbered steps. The number of the last
applied step is stored in ``settings.schema_version``. Databases written
before the marker existed get their starting version from the tables and
columns they have. Each step also checks the live schema, so running it
against a database that already has its change is a no-op.

A failed step aborts start-up with ``MigrationError``.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import inspect, select, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from tasktracker.errors import MigrationError
from tasktracker.models import Completion, Setting, db

logger = logging.getLogger(__name__)

SCHEMA_VERSION_KEY = 'schema_version'


def _table_names(conn) -> set[str]:
    return set(inspect(conn).get_table_names())


def _column_names(conn, table: str) -> set[str]:
    return {col['name'] for col in inspect(conn).get_columns(table)}


def _has_name_only_unique(conn, table):
    for index in conn.exec_driver_sql(f'PRAGMA index_list({table})').mappings().all():
        if not index['unique']:
            continue
        info = conn.exec_driver_sql(f'PRAGMA index_info("{index["name"]}")').mappings()
        columns = [row['name'] for row in info]
        if columns == ['name']:
            return True
    return False


def _rebuild_categories(conn):
    """Swap a table-wide UNIQUE(name) for UNIQUE(user_id, name)."""
    logger.info('Rebuilding categories with per-owner unique names')
    conn.execute(text(
        """
        CREATE TABLE categories_new (
            id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,
            user_id VARCHAR(64) NOT NULL,
            name VARCHAR(255) NOT NULL,
            created_at DATETIME,
            UNIQUE (user_id, name)
        )
        """
    ))
    conn.execute(text(
        'INSERT INTO categories_new (id, user_id, name, created_at) '
        'SELECT id, user_id, name, created_at FROM categories'
    ))
    conn.execute(text('DROP TABLE categories'))
    conn.execute(text('ALTER TABLE categories_new RENAME TO categories'))
    conn.execute(text('CREATE INDEX IF NOT EXISTS ix_categories_user_id ON categories (user_id)'))


# -------------------- Steps --------------------
def add_owner_columns(conn):
    """Give pre-cookie data a single synthetic owner."""
    legacy_user_id = 'legacy-user-' + str(uuid.uuid4())
    for table in ('categories', 'tasks'):
        if 'user_id' in _column_names(conn, table):
            continue
        logger.info('Adding user_id to %s; existing rows assigned to %s', table, legacy_user_id)
        conn.execute(text(f'ALTER TABLE {table} ADD COLUMN user_id TEXT'))
        conn.execute(
            text(f'UPDATE {table} SET user_id = :user_id WHERE user_id IS NULL'),
            {'user_id': legacy_user_id},
        )
    if _has_name_only_unique(conn, 'categories'):
        _rebuild_categories(conn)


def add_reset_day(conn):
    if 'reset_day' in _column_names(conn, 'tasks'):
        return
    conn.execute(text('ALTER TABLE tasks ADD COLUMN reset_day INTEGER'))
    conn.execute(text("UPDATE tasks SET reset_day = 0 WHERE frequency = 'weekly'"))
    conn.execute(text("UPDATE tasks SET reset_day = 1 WHERE frequency = 'monthly'"))


def add_completion_ledger(conn):
    """Create the ledger and seed it from the legacy ``completed`` flags."""
    Completion.__table__.create(conn, checkfirst=True)
    columns = _column_names(conn, 'tasks')
    if not {'completed', 'last_completed'} <= columns:
        return
    result = conn.execute(text(
        """
        INSERT OR IGNORE INTO task_completions (task_id, user_id, completed_date, created_at)
        SELECT id, user_id, substr(last_completed, 1, 10), CURRENT_TIMESTAMP
        FROM tasks
        WHERE completed = 1 AND last_completed IS NOT NULL
        """
    ))
    logger.info('Backfilled %s completion facts from legacy completed flags', result.rowcount)


def drop_completion_flags(conn):
    columns = _column_names(conn, 'tasks')
    for column in ('completed', 'last_completed'):
        if column in columns:
            conn.execute(text(f'ALTER TABLE tasks DROP COLUMN {column}'))


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    apply: Callable


MIGRATIONS = [
    Migration(1, 'add owner columns', add_owner_columns),
    Migration(2, 'add reset_day to tasks', add_reset_day),
    Migration(3, 'add task_completions ledger', add_completion_ledger),
    Migration(4, 'drop completed/last_completed flags', drop_completion_flags),
]

LATEST_VERSION = MIGRATIONS[-1].version


# -------------------- Version marker --------------------
def _read_version(conn) -> int | None:
    value = conn.execute(
        select(Setting.value).where(Setting.key == SCHEMA_VERSION_KEY)
    ).scalar()
    return int(value) if value is not None else None


def _write_version(conn, version: int):
    stmt = sqlite_insert(Setting).values(key=SCHEMA_VERSION_KEY, value=str(version))
    conn.execute(stmt.on_conflict_do_update(
        index_elements=['key'], set_={'value': stmt.excluded.value},
    ))


def detect_version(conn) -> int | None:
    """Infer the schema version of a database that predates the marker.

    Returns None for an empty database.
    """
    tables = _table_names(conn)
    if 'tasks' not in tables:
        return None
    columns = _column_names(conn, 'tasks')
    version = 0
    if 'user_id' in columns:
        version = 1
        if 'reset_day' in columns:
            version = 2
            if 'task_completions' in tables:
                version = 3
                if 'completed' not in columns:
                    version = 4
    return version


def current_schema_version():
    value = Setting.get(SCHEMA_VERSION_KEY)
    return int(value) if value is not None else None


def run_migrations(engine) -> int:
    """Bring the database at ``engine`` up to ``LATEST_VERSION``.

    Returns the resulting version. Raises MigrationError on any failure.
    """
    try:
        with engine.begin() as conn:
            Setting.__table__.create(conn, checkfirst=True)
            version = _read_version(conn)
            if version is None:
                version = detect_version(conn)
                if version is None:
                    logger.info('Creating schema version %s', LATEST_VERSION)
                    db.metadata.create_all(conn)
                    version = LATEST_VERSION
                else:
                    logger.info('Detected unversioned schema at version %s', version)
                _write_version(conn, version)

        for migration in MIGRATIONS:
            if migration.version <= version:
                continue
            logger.info('Migrating database to version %s: %s', migration.version, migration.description)
            with engine.connect() as conn:
                # table rebuilds must not cascade deletes into referencing rows;
                # the pragma only takes effect outside a transaction
                conn.exec_driver_sql('PRAGMA foreign_keys=OFF')
                conn.commit()
                try:
                    with conn.begin():
                        migration.apply(conn)
                        _write_version(conn, migration.version)
                finally:
                    conn.exec_driver_sql('PRAGMA foreign_keys=ON')
                    conn.commit()
            version = migration.version
    except SQLAlchemyError as exc:
        logger.exception('Database migration failed')
        raise MigrationError(f'Database migration failed: {exc}') from exc

    return version
