"""
SQLite store: bootstrap, migrations and convention-based CRUD.

Typical startup:

    initializer = DatabaseInitializer(registry)
    result = await initializer.initialize()
    if not result.ok:
        raise SystemExit(result.message)
    data = SQLiteDataAccess(initializer.resolve_store_path().unwrap())
"""

from .access import SQLiteDataAccess
from .entities import EntityMetadata, entity_metadata
from .initializer import DatabaseInitializer, InitializerState
from .migrations import (
    LedgerRecord,
    Migration,
    MigrationLedger,
    MigrationRegistry,
    MigrationRunner,
    load_migrations,
    sql_migration,
)
from .transactions import Transaction, open_connection, transaction

__all__ = [
    "DatabaseInitializer",
    "EntityMetadata",
    "InitializerState",
    "LedgerRecord",
    "Migration",
    "MigrationLedger",
    "MigrationRegistry",
    "MigrationRunner",
    "SQLiteDataAccess",
    "Transaction",
    "entity_metadata",
    "load_migrations",
    "open_connection",
    "sql_migration",
    "transaction",
]
