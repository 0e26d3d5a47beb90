"""
Database migrations module.

This module provides versioned, ordered migrations for the SQLite store.
Migrations are applied in order and tracked in the Migration ledger table.
"""

from .base import Migration, MigrationRegistry, load_migrations, sql_migration
from .ledger import LEDGER_TABLE, LedgerRecord, MigrationLedger
from .runner import MigrationRunner

__all__ = [
    "LEDGER_TABLE",
    "LedgerRecord",
    "Migration",
    "MigrationLedger",
    "MigrationRegistry",
    "MigrationRunner",
    "load_migrations",
    "sql_migration",
]
