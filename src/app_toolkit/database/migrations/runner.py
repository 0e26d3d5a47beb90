"""
Migration runner for versioned database schema changes.

Discovers, orders, validates and applies pending migrations. Each migration
runs in its own transaction together with its ledger row:

    BEGIN IMMEDIATE
      duplicate guard (ledger already has the number -> abort)
      migration.apply()
      ledger insert
    COMMIT

A failure at any step rolls back the whole transaction and stops the run.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable

import aiosqlite

from ...errors import DuplicateMigrationNumber, MigrationAlreadyApplied
from ..transactions import transaction
from .base import Migration
from .ledger import MigrationLedger


class MigrationRunner:
    """
    Runs database migrations in order.

    Tracks applied migrations in the `Migration` ledger table.
    """

    def __init__(
        self,
        migrations: Iterable[Migration],
        ledger: MigrationLedger | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize with the explicit set of known migrations.

        Args:
            migrations: Registered migrations (a list, a MigrationRegistry, ...)
            ledger: Ledger accessor (default: MigrationLedger())
            logger: Logger sink (default: this module's logger)
        """
        self._migrations = list(migrations)
        self.ledger = ledger or MigrationLedger()
        self.logger = logger or logging.getLogger(__name__)

    def discover_migrations(self) -> list[Migration]:
        """
        Return all known migrations sorted ascending by number.

        Raises:
            DuplicateMigrationNumber: If two migrations share a number
        """
        by_number: dict[int, list[Migration]] = defaultdict(list)
        for migration in self._migrations:
            by_number[migration.number].append(migration)

        for number in sorted(by_number):
            if len(by_number[number]) > 1:
                raise DuplicateMigrationNumber(
                    number, [m.description for m in by_number[number]]
                )

        return sorted(self._migrations, key=lambda m: m.number)

    def pending(self, since_number: int | None) -> list[Migration]:
        """Migrations numbered strictly above since_number (all if None)."""
        migrations = self.discover_migrations()
        if since_number is None:
            return migrations
        return [m for m in migrations if m.number > since_number]

    async def apply_migration(self, connection: aiosqlite.Connection, migration: Migration) -> None:
        """
        Apply a single migration and record it, atomically.

        Raises:
            MigrationAlreadyApplied: If the ledger already has this number
        """
        self.logger.info(f"Applying migration {migration.number}: {migration.description}")

        try:
            async with transaction(connection) as txn:
                if await self.ledger.is_applied(connection, migration.number):
                    raise MigrationAlreadyApplied(migration.number)
                await migration.apply(connection, txn)
                await self.ledger.record_applied(connection, txn, migration)
        except MigrationAlreadyApplied:
            self.logger.warning(
                f"Migration {migration.display_name} was already applied; aborted"
            )
            raise
        except Exception as e:
            self.logger.error(f"Migration {migration.display_name} failed: {e}")
            raise

        self.logger.info(f"Migration {migration.display_name} applied successfully")

    async def apply_pending(
        self, connection: aiosqlite.Connection, since_number: int | None
    ) -> list[int]:
        """
        Apply every migration numbered above since_number, in ascending order.

        Returns list of applied migration numbers.
        """
        applied_numbers = []
        for migration in self.pending(since_number):
            await self.apply_migration(connection, migration)
            applied_numbers.append(migration.number)

        if applied_numbers:
            self.logger.info(f"Applied {len(applied_numbers)} migrations: {applied_numbers}")
        else:
            self.logger.info("No pending migrations")

        return applied_numbers
