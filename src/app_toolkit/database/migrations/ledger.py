"""
Migration ledger.

The `Migration` table records every migration applied to the store, exactly
once each. Its Id column is an internal identity; callers only ever see the
business Number.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

import aiosqlite

from ..transactions import Transaction
from .base import Migration

LEDGER_TABLE = "Migration"

CREATE_LEDGER_TABLE = f"""
    CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} (
        Id INTEGER PRIMARY KEY AUTOINCREMENT,
        Number INTEGER NOT NULL,
        Description TEXT NOT NULL,
        AppliedAt TEXT NOT NULL DEFAULT (CURRENT_TIMESTAMP)
    )
"""


@dataclass
class LedgerRecord:
    """One applied migration."""

    number: int
    description: str
    applied_at: str  # ISO timestamp

    @classmethod
    def from_row(cls, row: aiosqlite.Row) -> "LedgerRecord":
        """Create from database row."""
        return cls(
            number=row["Number"],
            description=row["Description"],
            applied_at=row["AppliedAt"],
        )


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class MigrationLedger:
    """Reads and writes the migration ledger table."""

    async def ensure_table_exists(self, connection: aiosqlite.Connection) -> None:
        """Create the ledger table if it doesn't exist."""
        await connection.execute(CREATE_LEDGER_TABLE)

    async def table_exists(self, connection: aiosqlite.Connection) -> bool:
        async with connection.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
            (LEDGER_TABLE,),
        ) as cursor:
            return await cursor.fetchone() is not None

    async def max_applied_number(self, connection: aiosqlite.Connection) -> int | None:
        """Get the highest applied migration number, None for an empty ledger."""
        async with connection.execute(f"SELECT MAX(Number) FROM {LEDGER_TABLE}") as cursor:
            row = await cursor.fetchone()
        return row[0] if row is not None else None

    async def is_applied(self, connection: aiosqlite.Connection, number: int) -> bool:
        async with connection.execute(
            f"SELECT COUNT(1) FROM {LEDGER_TABLE} WHERE Number = ?", (number,)
        ) as cursor:
            row = await cursor.fetchone()
        return bool(row and row[0])

    async def record_applied(
        self,
        connection: aiosqlite.Connection,
        transaction: Transaction,
        migration: Migration,
    ) -> None:
        """Insert the ledger row for a migration inside its transaction."""
        await transaction.execute(
            f"INSERT INTO {LEDGER_TABLE} (Number, Description, AppliedAt) VALUES (?, ?, ?)",
            (migration.number, migration.description, utc_timestamp()),
        )

    async def history(self, connection: aiosqlite.Connection) -> list[LedgerRecord]:
        """All applied migrations in ascending number order."""
        async with connection.execute(
            f"SELECT Number, Description, AppliedAt FROM {LEDGER_TABLE} ORDER BY Number ASC"
        ) as cursor:
            rows = await cursor.fetchall()
        return [LedgerRecord.from_row(row) for row in rows]
